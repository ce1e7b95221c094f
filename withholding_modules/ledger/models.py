"""
Ledger Domain Models.

Responsibility:
    Frozen dataclass DTOs for the host-ledger records the withholding
    evaluators read: orders, order lines, order tax lines, taxes, business
    partners, organization info, currencies and document types.

Architecture:
    withholding_modules -- ERP glue (this layer).
    These models are read-only inputs.  The evaluators never mutate them;
    generic attribute access on host records is replaced by the named
    fields below, filled by the ORM ``to_dto()`` adapters.

Invariants:
    - All models are ``frozen=True``.
    - All monetary fields use ``Decimal`` -- NEVER ``float``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import ClassVar, Union
from uuid import UUID


class DocumentStatus(str, Enum):
    """Document lifecycle states shared by orders and withholding records."""
    DRAFTED = "DR"
    IN_PROGRESS = "IP"
    COMPLETED = "CO"
    CLOSED = "CL"
    VOIDED = "VO"
    REVERSED = "RE"


class OrderField(str, Enum):
    """Order and order-line fields whose change can trigger an evaluation."""
    LINE_NET_AMOUNT = "line_net_amount"
    TAX = "tax_id"
    DOC_TYPE_TARGET = "doc_type_target_id"
    BUSINESS_PARTNER = "business_partner_id"


@dataclass(frozen=True)
class Currency:
    """A currency and its standard precision."""
    code: str
    std_precision: int = 2


@dataclass(frozen=True)
class DocumentType:
    """A target document type."""
    id: UUID
    name: str
    is_sotrx: bool = False


@dataclass(frozen=True)
class BusinessPartner:
    """
    A business partner with the flags and references withholding needs.

    ``business_activity_id`` and ``withholding_tax_rate_id`` point to rate
    lists; ``municipal_rate_version_id`` points to one pinned version.
    """
    id: UUID
    name: str
    is_taxpayer: bool = False
    is_withholding_municipal_exempt: bool = False
    is_withholding_tax_exempt: bool = False
    business_activity_id: UUID | None = None
    municipal_rate_version_id: UUID | None = None
    withholding_tax_rate_id: UUID | None = None


@dataclass(frozen=True)
class OrganizationInfo:
    """Organization configuration; sales withholding is filed under its partner."""
    org_id: UUID
    withholding_partner_id: UUID | None = None


@dataclass(frozen=True)
class Tax:
    """A tax and whether VAT withholding applies to it."""
    id: UUID
    name: str
    rate: Decimal = Decimal("0")
    is_withholding_tax_applied: bool = False


@dataclass(frozen=True)
class OrderTax:
    """One tax line of an order."""
    id: UUID
    order_id: UUID
    tax_id: UUID
    tax_base_amount: Decimal
    tax_amount: Decimal | None


@dataclass(frozen=True)
class Order:
    """
    A sales or purchase order.

    ``changed_fields`` carries the fields modified by the save that
    triggered the evaluation; the ledger does not persist it.
    """
    TABLE_NAME: ClassVar[str] = "orders"

    id: UUID
    client_id: UUID
    org_id: UUID
    document_no: str
    business_partner_id: UUID
    currency_code: str
    date_ordered: date
    date_acct: date
    doc_status: DocumentStatus = DocumentStatus.DRAFTED
    is_sotrx: bool = False
    is_processed: bool = False
    doc_type_target_id: UUID | None = None
    pos_id: UUID | None = None
    sales_rep_id: UUID | None = None
    conversion_type_id: UUID | None = None
    total_lines: Decimal = Decimal("0")
    is_withholding_tax_exempt: bool = False
    third_party_id: UUID | None = None
    changed_fields: frozenset[str] = field(default_factory=frozenset)

    @property
    def table_name(self) -> str:
        return self.TABLE_NAME

    def is_changed(self, field_name: OrderField | str) -> bool:
        name = field_name.value if isinstance(field_name, OrderField) else field_name
        return name in self.changed_fields


@dataclass(frozen=True)
class OrderLine:
    """An order line; its parent order is resolved through the gateway."""
    TABLE_NAME: ClassVar[str] = "order_lines"

    id: UUID
    order_id: UUID
    org_id: UUID
    line_net_amount: Decimal = Decimal("0")
    tax_id: UUID | None = None
    changed_fields: frozenset[str] = field(default_factory=frozenset)

    @property
    def table_name(self) -> str:
        return self.TABLE_NAME

    def is_changed(self, field_name: OrderField | str) -> bool:
        name = field_name.value if isinstance(field_name, OrderField) else field_name
        return name in self.changed_fields


Document = Union[Order, OrderLine]
