"""
Module: withholding_modules.ledger.gateway
Responsibility: Read-only access to host-ledger records for the withholding
    evaluators.  Replaces active-record style lookups with explicit queries
    that return frozen DTOs.
Architecture position: Modules > Ledger.  May import from withholding_kernel
    and from the sibling ledger ORM/DTO modules.

Invariants enforced:
    - Read-only access: the gateway MUST NOT call session.add(),
      session.delete(), session.commit(), or session.flush().
    - DTO return convention: every lookup returns a frozen dataclass from
      ``withholding_modules.ledger.models`` (or None / empty tuple), never
      an ORM instance.
    - Session ownership: the caller owns the session and its transaction.

Failure modes:
    - Unknown ids resolve to None; the evaluators turn that into a
      diagnostic.  Database errors propagate unchanged.
"""

from __future__ import annotations

from collections.abc import Iterable
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from withholding_modules.ledger.models import (
    BusinessPartner,
    Currency,
    DocumentType,
    Order,
    OrderLine,
    OrderTax,
    OrganizationInfo,
    Tax,
)
from withholding_modules.ledger.orm import (
    BusinessPartnerModel,
    CurrencyModel,
    DocumentTypeModel,
    OrderLineModel,
    OrderModel,
    OrderTaxModel,
    OrganizationInfoModel,
    TaxModel,
)


class LedgerGateway:
    """
    Read-only accessor for orders, lines, partners and their references.

    Contract:
        Accepts a Session from the caller and performs read-only queries.

    Guarantees:
        - No commit, flush, add, or delete operations are performed.
        - ``changed_fields`` passed to the document lookups is attached to
          the returned DTO so strategies can test which fields the
          triggering save modified.

    Non-goals:
        - Currency conversion and document-type semantics beyond lookup.
    """

    def __init__(self, session: Session):
        self.session = session

    # -------------------------------------------------------------------------
    # Documents
    # -------------------------------------------------------------------------

    def get_order(
        self,
        order_id: UUID,
        changed_fields: Iterable[str] = (),
    ) -> Order | None:
        model = self.session.get(OrderModel, order_id)
        return model.to_dto(changed_fields) if model is not None else None

    def get_order_line(
        self,
        line_id: UUID,
        changed_fields: Iterable[str] = (),
    ) -> OrderLine | None:
        model = self.session.get(OrderLineModel, line_id)
        return model.to_dto(changed_fields) if model is not None else None

    def get_order_taxes(self, order_id: UUID) -> tuple[OrderTax, ...]:
        """Tax lines of an order, ordered by id."""
        stmt = (
            select(OrderTaxModel)
            .where(OrderTaxModel.order_id == order_id)
            .order_by(OrderTaxModel.id)
        )
        return tuple(m.to_dto() for m in self.session.scalars(stmt))

    # -------------------------------------------------------------------------
    # References
    # -------------------------------------------------------------------------

    def get_business_partner(self, partner_id: UUID | None) -> BusinessPartner | None:
        if partner_id is None:
            return None
        model = self.session.get(BusinessPartnerModel, partner_id)
        return model.to_dto() if model is not None else None

    def get_organization_info(self, org_id: UUID) -> OrganizationInfo | None:
        stmt = select(OrganizationInfoModel).where(
            OrganizationInfoModel.org_id == org_id,
        )
        model = self.session.scalars(stmt).first()
        return model.to_dto() if model is not None else None

    def get_currency(self, code: str) -> Currency | None:
        stmt = select(CurrencyModel).where(CurrencyModel.code == code)
        model = self.session.scalars(stmt).first()
        return model.to_dto() if model is not None else None

    def get_document_type(self, doc_type_id: UUID | None) -> DocumentType | None:
        if doc_type_id is None:
            return None
        model = self.session.get(DocumentTypeModel, doc_type_id)
        return model.to_dto() if model is not None else None

    def get_tax(self, tax_id: UUID) -> Tax | None:
        model = self.session.get(TaxModel, tax_id)
        return model.to_dto() if model is not None else None
