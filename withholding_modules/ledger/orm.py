"""
Ledger ORM Persistence Models (``withholding_modules.ledger.orm``).

Responsibility:
    SQLAlchemy ORM models mirroring the host-ledger tables the withholding
    evaluators read.  Each ORM class provides ``to_dto()`` into the frozen
    dataclasses of ``withholding_modules.ledger.models``.

Architecture position:
    **Modules layer** -- adapter between host rows and typed DTOs.  These
    tables are owned by the host ledger and inherit plain ``Base`` (no
    audit columns); the withholding core never writes to them.

Invariants enforced:
    - All monetary fields use Decimal (Numeric(38,9)) -- NEVER float.
    - Status values are stored as the ``DocumentStatus`` .value string.
    - ``orders.doc_type_target_id`` carries no FK: the ledger may hold a
      reference to a document type that no longer resolves, and the
      evaluators report that as a diagnostic.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, Date, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from withholding_kernel.db.base import Base


# ---------------------------------------------------------------------------
# CurrencyModel
# ---------------------------------------------------------------------------

class CurrencyModel(Base):
    """ORM model for ``Currency`` -- ISO code and standard precision."""

    __tablename__ = "currencies"

    code: Mapped[str] = mapped_column(String(3), nullable=False)
    std_precision: Mapped[int] = mapped_column(Integer, nullable=False, default=2)

    __table_args__ = (
        UniqueConstraint("code", name="uq_currency_code"),
    )

    def to_dto(self):
        from withholding_modules.ledger.models import Currency
        return Currency(code=self.code, std_precision=self.std_precision)

    def __repr__(self) -> str:
        return f"<CurrencyModel {self.code} precision={self.std_precision}>"


# ---------------------------------------------------------------------------
# DocumentTypeModel
# ---------------------------------------------------------------------------

class DocumentTypeModel(Base):
    """ORM model for ``DocumentType``."""

    __tablename__ = "document_types"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    is_sotrx: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    def to_dto(self):
        from withholding_modules.ledger.models import DocumentType
        return DocumentType(id=self.id, name=self.name, is_sotrx=self.is_sotrx)


# ---------------------------------------------------------------------------
# BusinessPartnerModel
# ---------------------------------------------------------------------------

class BusinessPartnerModel(Base):
    """
    ORM model for ``BusinessPartner``.

    Contract:
        Exemption flags default to False.  Rate references point into the
        withholding module's rate tables.
    """

    __tablename__ = "business_partners"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    is_taxpayer: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_withholding_municipal_exempt: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False,
    )
    is_withholding_tax_exempt: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False,
    )
    business_activity_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("rate_lists.id"), nullable=True,
    )
    municipal_rate_version_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("rate_list_versions.id"), nullable=True,
    )
    withholding_tax_rate_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("rate_lists.id"), nullable=True,
    )

    def to_dto(self):
        from withholding_modules.ledger.models import BusinessPartner
        return BusinessPartner(
            id=self.id,
            name=self.name,
            is_taxpayer=self.is_taxpayer,
            is_withholding_municipal_exempt=self.is_withholding_municipal_exempt,
            is_withholding_tax_exempt=self.is_withholding_tax_exempt,
            business_activity_id=self.business_activity_id,
            municipal_rate_version_id=self.municipal_rate_version_id,
            withholding_tax_rate_id=self.withholding_tax_rate_id,
        )

    def __repr__(self) -> str:
        return f"<BusinessPartnerModel {self.name}>"


# ---------------------------------------------------------------------------
# OrganizationInfoModel
# ---------------------------------------------------------------------------

class OrganizationInfoModel(Base):
    """ORM model for ``OrganizationInfo`` -- one row per organization."""

    __tablename__ = "organization_infos"

    org_id: Mapped[UUID] = mapped_column(nullable=False)
    withholding_partner_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("business_partners.id"), nullable=True,
    )

    __table_args__ = (
        UniqueConstraint("org_id", name="uq_organization_info_org"),
    )

    def to_dto(self):
        from withholding_modules.ledger.models import OrganizationInfo
        return OrganizationInfo(
            org_id=self.org_id,
            withholding_partner_id=self.withholding_partner_id,
        )


# ---------------------------------------------------------------------------
# TaxModel
# ---------------------------------------------------------------------------

class TaxModel(Base):
    """ORM model for ``Tax``."""

    __tablename__ = "taxes"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    rate: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    is_withholding_tax_applied: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False,
    )

    def to_dto(self):
        from withholding_modules.ledger.models import Tax
        return Tax(
            id=self.id,
            name=self.name,
            rate=self.rate,
            is_withholding_tax_applied=self.is_withholding_tax_applied,
        )


# ---------------------------------------------------------------------------
# OrderModel
# ---------------------------------------------------------------------------

class OrderModel(Base):
    """
    ORM model for ``Order``.

    Contract:
        ``pos_id`` is set only for point-of-sale orders.  ``total_lines`` is
        maintained by the host ledger.
    """

    __tablename__ = "orders"

    client_id: Mapped[UUID] = mapped_column(nullable=False)
    org_id: Mapped[UUID] = mapped_column(nullable=False)
    document_no: Mapped[str] = mapped_column(String(50), nullable=False)
    business_partner_id: Mapped[UUID] = mapped_column(
        ForeignKey("business_partners.id"), nullable=False,
    )
    currency_code: Mapped[str] = mapped_column(String(3), nullable=False)
    date_ordered: Mapped[date] = mapped_column(Date, nullable=False)
    date_acct: Mapped[date] = mapped_column(Date, nullable=False)
    doc_status: Mapped[str] = mapped_column(String(2), nullable=False, default="DR")
    is_sotrx: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_processed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    doc_type_target_id: Mapped[UUID | None] = mapped_column(nullable=True)
    pos_id: Mapped[UUID | None] = mapped_column(nullable=True)
    sales_rep_id: Mapped[UUID | None] = mapped_column(nullable=True)
    conversion_type_id: Mapped[UUID | None] = mapped_column(nullable=True)
    total_lines: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    is_withholding_tax_exempt: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False,
    )
    third_party_id: Mapped[UUID | None] = mapped_column(nullable=True)

    lines: Mapped[list["OrderLineModel"]] = relationship(
        "OrderLineModel", back_populates="order", lazy="select",
    )

    __table_args__ = (
        Index("idx_order_pos", "pos_id"),
        Index("idx_order_partner", "business_partner_id"),
    )

    def to_dto(self, changed_fields=()):
        from withholding_modules.ledger.models import DocumentStatus, Order
        return Order(
            id=self.id,
            client_id=self.client_id,
            org_id=self.org_id,
            document_no=self.document_no,
            business_partner_id=self.business_partner_id,
            currency_code=self.currency_code,
            date_ordered=self.date_ordered,
            date_acct=self.date_acct,
            doc_status=DocumentStatus(self.doc_status),
            is_sotrx=self.is_sotrx,
            is_processed=self.is_processed,
            doc_type_target_id=self.doc_type_target_id,
            pos_id=self.pos_id,
            sales_rep_id=self.sales_rep_id,
            conversion_type_id=self.conversion_type_id,
            total_lines=self.total_lines,
            is_withholding_tax_exempt=self.is_withholding_tax_exempt,
            third_party_id=self.third_party_id,
            changed_fields=frozenset(changed_fields),
        )

    def __repr__(self) -> str:
        return f"<OrderModel {self.document_no} status={self.doc_status}>"


# ---------------------------------------------------------------------------
# OrderLineModel
# ---------------------------------------------------------------------------

class OrderLineModel(Base):
    """ORM model for ``OrderLine``."""

    __tablename__ = "order_lines"

    order_id: Mapped[UUID] = mapped_column(ForeignKey("orders.id"), nullable=False)
    org_id: Mapped[UUID] = mapped_column(nullable=False)
    line_net_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    tax_id: Mapped[UUID | None] = mapped_column(ForeignKey("taxes.id"), nullable=True)

    order: Mapped["OrderModel"] = relationship(
        "OrderModel", back_populates="lines", lazy="select",
    )

    __table_args__ = (
        Index("idx_order_line_order", "order_id"),
    )

    def to_dto(self, changed_fields=()):
        from withholding_modules.ledger.models import OrderLine
        return OrderLine(
            id=self.id,
            order_id=self.order_id,
            org_id=self.org_id,
            line_net_amount=self.line_net_amount,
            tax_id=self.tax_id,
            changed_fields=frozenset(changed_fields),
        )


# ---------------------------------------------------------------------------
# OrderTaxModel
# ---------------------------------------------------------------------------

class OrderTaxModel(Base):
    """
    ORM model for ``OrderTax`` -- the per-tax totals of an order.

    Guarantees:
        - One row per (order, tax) (uq_order_tax_order_tax).
    """

    __tablename__ = "order_taxes"

    order_id: Mapped[UUID] = mapped_column(ForeignKey("orders.id"), nullable=False)
    tax_id: Mapped[UUID] = mapped_column(ForeignKey("taxes.id"), nullable=False)
    tax_base_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    tax_amount: Mapped[Decimal | None] = mapped_column(nullable=True)

    __table_args__ = (
        UniqueConstraint("order_id", "tax_id", name="uq_order_tax_order_tax"),
    )

    def to_dto(self):
        from withholding_modules.ledger.models import OrderTax
        return OrderTax(
            id=self.id,
            order_id=self.order_id,
            tax_id=self.tax_id,
            tax_base_amount=self.tax_base_amount,
            tax_amount=self.tax_amount,
        )
