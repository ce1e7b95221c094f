"""
Withholding Domain Models.

Responsibility:
    Frozen dataclass DTOs for the withholding reference data (rate lists,
    tax definitions, tribute units, payment methods and their POS
    allocations) and for the two outputs of an evaluation: the
    ``WithholdingRecord`` and the derived POS ``PaymentReference``.

Architecture:
    withholding_modules -- ERP glue (this layer).
    Rate arithmetic is delegated to ``withholding_engines``; these models
    only carry data across the repository boundary.

Invariants:
    - All models are ``frozen=True``.
    - Rates are fractions (``Decimal("0.75")`` is 75 %).
    - All monetary fields use ``Decimal`` -- NEVER ``float``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

from withholding_engines.rates import RateSlice, effective_amount
from withholding_modules.ledger.models import DocumentStatus

# Payment tender type of a credit memo.
TENDER_TYPE_CREDIT_MEMO = "M"


class WithholdingRegimeType(str, Enum):
    """Kinds of withholding tax definition; one definition per kind per client."""
    MUNICIPAL = "IM"
    VAT = "IVA"


@dataclass(frozen=True)
class RateList:
    """A named list of time-sliced rates (also used as business activity)."""
    id: UUID
    name: str


@dataclass(frozen=True)
class RateListVersion:
    """One time slice of a rate list."""
    id: UUID
    rate_list_id: UUID
    valid_from: date
    amount: Decimal

    def to_slice(self) -> RateSlice:
        return RateSlice(valid_from=self.valid_from, amount=self.amount)


@dataclass(frozen=True)
class TributeUnit:
    """Value of the tribute unit from ``valid_from`` onwards."""
    id: UUID
    definition_id: UUID
    valid_from: date
    amount: Decimal


@dataclass(frozen=True)
class WithholdingTaxDefinition:
    """
    Per-client definition of one withholding regime.

    ``tribute_units`` is loaded with the definition so the tribute-unit
    value at a date can be resolved without a second query.
    """
    id: UUID
    client_id: UUID
    name: str
    regime_type: WithholdingRegimeType
    is_client_excluded: bool = False
    default_rate_list_id: UUID | None = None
    tribute_units: tuple[TributeUnit, ...] = ()

    def valid_tribute_unit_amount(self, as_of: date) -> Decimal:
        """Tribute-unit value in force at ``as_of``; zero when none is."""
        slices = [RateSlice(valid_from=u.valid_from, amount=u.amount) for u in self.tribute_units]
        return effective_amount(slices, as_of)


@dataclass(frozen=True)
class PaymentMethod:
    """A payment method; credit-memo methods carry a withholding type."""
    id: UUID
    name: str
    tender_type: str
    description: str | None = None
    withholding_type_id: UUID | None = None


@dataclass(frozen=True)
class PaymentMethodAllocation:
    """A payment method made available on a point of sale."""
    id: UUID
    pos_id: UUID
    payment_method_id: UUID
    name: str | None = None
    is_payment_reference: bool = False
    is_active: bool = True


@dataclass(frozen=True)
class WithholdingRecord:
    """
    The persisted result of a municipal withholding.

    ``id`` is None until the record has been saved.
    """
    source_order_id: UUID
    org_id: UUID
    definition_id: UUID
    setting_id: UUID
    withholding_rate: Decimal
    base_amount: Decimal
    withholding_amount: Decimal
    description: str
    is_manual: bool = False
    is_simulation: bool = True
    tax_id: UUID | None = None
    third_party_id: UUID | None = None
    processed: bool = False
    doc_status: DocumentStatus = DocumentStatus.DRAFTED
    id: UUID | None = None


@dataclass(frozen=True)
class PaymentReference:
    """
    A credit-memo payment reference derived from a POS VAT withholding.

    Keyed by (order_id, tender_type, payment_method_id).  ``id`` is None
    until the reference has been saved.
    """
    order_id: UUID
    client_id: UUID
    org_id: UUID
    pos_id: UUID
    business_partner_id: UUID
    currency_code: str
    payment_method_id: UUID
    amount: Decimal
    source_amount: Decimal
    base_amount: Decimal
    rate: Decimal
    pay_date: date
    description: str = ""
    conversion_type_id: UUID | None = None
    sales_rep_id: UUID | None = None
    tender_type: str = TENDER_TYPE_CREDIT_MEMO
    is_receipt: bool = True
    is_keep_reference_after_process: bool = False
    is_auto_created: bool = True
    processed: bool = False
    id: UUID | None = None
