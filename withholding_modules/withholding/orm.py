"""
Withholding ORM Persistence Models (``withholding_modules.withholding.orm``).

Responsibility:
    SQLAlchemy ORM models for withholding reference data and outputs.  Each
    ORM class mirrors a DTO in ``withholding_modules.withholding.models`` and
    provides ``to_dto()``; the two output tables also provide
    ``from_dto()``.

Architecture position:
    **Modules layer** -- persistence companions to the pure DTO models.
    Reference tables (rate lists, definitions, tribute units, payment
    methods, POS allocations) inherit plain ``Base``.  Output tables
    (withholding records, POS payment references) inherit ``TrackedBase``
    which adds created_at, updated_at, created_by_id (NOT NULL) and
    updated_by_id.

Invariants enforced:
    - All monetary fields and rates use Decimal (Numeric(38,9)) -- NEVER float.
    - Enum fields are stored as their .value string.
    - One withholding tax definition per (client, regime type).

Audit relevance:
    Every withholding record and payment reference carries the actor who
    created it and the timestamps of its creation and last change.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, Date, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from withholding_kernel.db.base import Base, TrackedBase


# ---------------------------------------------------------------------------
# RateListModel
# ---------------------------------------------------------------------------

class RateListModel(Base):
    """ORM model for ``RateList`` -- owns its time-sliced versions."""

    __tablename__ = "rate_lists"

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    versions: Mapped[list["RateListVersionModel"]] = relationship(
        "RateListVersionModel", back_populates="rate_list", lazy="select",
        order_by="RateListVersionModel.valid_from",
    )

    def to_dto(self):
        from withholding_modules.withholding.models import RateList
        return RateList(id=self.id, name=self.name)

    def __repr__(self) -> str:
        return f"<RateListModel {self.name}>"


# ---------------------------------------------------------------------------
# RateListVersionModel
# ---------------------------------------------------------------------------

class RateListVersionModel(Base):
    """
    ORM model for ``RateListVersion``.

    Guarantees:
        - At most one version per (rate list, valid_from)
          (uq_rate_list_version_valid_from).
    """

    __tablename__ = "rate_list_versions"

    rate_list_id: Mapped[UUID] = mapped_column(
        ForeignKey("rate_lists.id"), nullable=False,
    )
    valid_from: Mapped[date] = mapped_column(Date, nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    rate_list: Mapped["RateListModel"] = relationship(
        "RateListModel", back_populates="versions", lazy="select",
    )

    __table_args__ = (
        UniqueConstraint(
            "rate_list_id", "valid_from",
            name="uq_rate_list_version_valid_from",
        ),
        Index("idx_rate_list_version_list", "rate_list_id"),
    )

    def to_dto(self):
        from withholding_modules.withholding.models import RateListVersion
        return RateListVersion(
            id=self.id,
            rate_list_id=self.rate_list_id,
            valid_from=self.valid_from,
            amount=self.amount,
        )


# ---------------------------------------------------------------------------
# WithholdingTaxDefinitionModel
# ---------------------------------------------------------------------------

class WithholdingTaxDefinitionModel(Base):
    """
    ORM model for ``WithholdingTaxDefinition``.

    Contract:
        ``regime_type`` stores the ``WithholdingRegimeType`` .value string.
        Tribute units are loaded with the definition.

    Guarantees:
        - One definition per (client_id, regime_type)
          (uq_withholding_tax_definition_client_regime).
    """

    __tablename__ = "withholding_tax_definitions"

    client_id: Mapped[UUID] = mapped_column(nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    regime_type: Mapped[str] = mapped_column(String(10), nullable=False)
    is_client_excluded: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False,
    )
    default_rate_list_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("rate_lists.id"), nullable=True,
    )

    tribute_units: Mapped[list["TributeUnitModel"]] = relationship(
        "TributeUnitModel", back_populates="definition", lazy="selectin",
        order_by="TributeUnitModel.valid_from",
    )

    __table_args__ = (
        UniqueConstraint(
            "client_id", "regime_type",
            name="uq_withholding_tax_definition_client_regime",
        ),
    )

    def to_dto(self):
        from withholding_modules.withholding.models import (
            WithholdingRegimeType,
            WithholdingTaxDefinition,
        )
        return WithholdingTaxDefinition(
            id=self.id,
            client_id=self.client_id,
            name=self.name,
            regime_type=WithholdingRegimeType(self.regime_type),
            is_client_excluded=self.is_client_excluded,
            default_rate_list_id=self.default_rate_list_id,
            tribute_units=tuple(u.to_dto() for u in self.tribute_units),
        )

    def __repr__(self) -> str:
        return f"<WithholdingTaxDefinitionModel {self.name} ({self.regime_type})>"


# ---------------------------------------------------------------------------
# TributeUnitModel
# ---------------------------------------------------------------------------

class TributeUnitModel(Base):
    """ORM model for ``TributeUnit``."""

    __tablename__ = "tribute_units"

    definition_id: Mapped[UUID] = mapped_column(
        ForeignKey("withholding_tax_definitions.id"), nullable=False,
    )
    valid_from: Mapped[date] = mapped_column(Date, nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)

    definition: Mapped["WithholdingTaxDefinitionModel"] = relationship(
        "WithholdingTaxDefinitionModel", back_populates="tribute_units", lazy="select",
    )

    def to_dto(self):
        from withholding_modules.withholding.models import TributeUnit
        return TributeUnit(
            id=self.id,
            definition_id=self.definition_id,
            valid_from=self.valid_from,
            amount=self.amount,
        )


# ---------------------------------------------------------------------------
# PaymentMethodModel
# ---------------------------------------------------------------------------

class PaymentMethodModel(Base):
    """ORM model for ``PaymentMethod``."""

    __tablename__ = "payment_methods"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(String(255), nullable=True)
    tender_type: Mapped[str] = mapped_column(String(1), nullable=False)
    withholding_type_id: Mapped[UUID | None] = mapped_column(nullable=True)

    def to_dto(self):
        from withholding_modules.withholding.models import PaymentMethod
        return PaymentMethod(
            id=self.id,
            name=self.name,
            tender_type=self.tender_type,
            description=self.description,
            withholding_type_id=self.withholding_type_id,
        )


# ---------------------------------------------------------------------------
# PosPaymentTypeAllocationModel
# ---------------------------------------------------------------------------

class PosPaymentTypeAllocationModel(Base):
    """ORM model for ``PaymentMethodAllocation`` -- a method offered on a POS."""

    __tablename__ = "pos_payment_type_allocations"

    pos_id: Mapped[UUID] = mapped_column(nullable=False)
    payment_method_id: Mapped[UUID] = mapped_column(
        ForeignKey("payment_methods.id"), nullable=False,
    )
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    is_payment_reference: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False,
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    payment_method: Mapped["PaymentMethodModel"] = relationship(
        "PaymentMethodModel", lazy="select",
    )

    __table_args__ = (
        Index("idx_pos_payment_type_allocation_pos", "pos_id"),
    )

    def to_dto(self):
        from withholding_modules.withholding.models import PaymentMethodAllocation
        return PaymentMethodAllocation(
            id=self.id,
            pos_id=self.pos_id,
            payment_method_id=self.payment_method_id,
            name=self.name,
            is_payment_reference=self.is_payment_reference,
            is_active=self.is_active,
        )


# ---------------------------------------------------------------------------
# WithholdingRecordModel
# ---------------------------------------------------------------------------

class WithholdingRecordModel(TrackedBase):
    """
    ORM model for ``WithholdingRecord``.

    Contract:
        ``doc_status`` stores the ``DocumentStatus`` .value string.  Records
        are written by the municipal evaluator as unprocessed drafts; the
        host's withholding document workflow processes them later.
    """

    __tablename__ = "withholding_records"

    source_order_id: Mapped[UUID] = mapped_column(
        ForeignKey("orders.id"), nullable=False,
    )
    org_id: Mapped[UUID] = mapped_column(nullable=False)
    definition_id: Mapped[UUID] = mapped_column(nullable=False)
    setting_id: Mapped[UUID] = mapped_column(nullable=False)
    tax_id: Mapped[UUID | None] = mapped_column(nullable=True)
    third_party_id: Mapped[UUID | None] = mapped_column(nullable=True)
    withholding_rate: Mapped[Decimal] = mapped_column(nullable=False)
    base_amount: Mapped[Decimal] = mapped_column(nullable=False)
    withholding_amount: Mapped[Decimal] = mapped_column(nullable=False)
    description: Mapped[str] = mapped_column(String(4000), nullable=False, default="")
    is_manual: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_simulation: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    processed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    doc_status: Mapped[str] = mapped_column(String(2), nullable=False, default="DR")

    __table_args__ = (
        Index(
            "idx_withholding_record_source",
            "source_order_id", "definition_id", "setting_id",
        ),
    )

    def to_dto(self):
        from withholding_modules.ledger.models import DocumentStatus
        from withholding_modules.withholding.models import WithholdingRecord
        return WithholdingRecord(
            id=self.id,
            source_order_id=self.source_order_id,
            org_id=self.org_id,
            definition_id=self.definition_id,
            setting_id=self.setting_id,
            withholding_rate=self.withholding_rate,
            base_amount=self.base_amount,
            withholding_amount=self.withholding_amount,
            description=self.description,
            is_manual=self.is_manual,
            is_simulation=self.is_simulation,
            tax_id=self.tax_id,
            third_party_id=self.third_party_id,
            processed=self.processed,
            doc_status=DocumentStatus(self.doc_status),
        )

    @classmethod
    def from_dto(cls, dto, created_by_id: UUID) -> "WithholdingRecordModel":
        return cls(
            source_order_id=dto.source_order_id,
            org_id=dto.org_id,
            definition_id=dto.definition_id,
            setting_id=dto.setting_id,
            tax_id=dto.tax_id,
            third_party_id=dto.third_party_id,
            withholding_rate=dto.withholding_rate,
            base_amount=dto.base_amount,
            withholding_amount=dto.withholding_amount,
            description=dto.description,
            is_manual=dto.is_manual,
            is_simulation=dto.is_simulation,
            processed=dto.processed,
            doc_status=dto.doc_status.value if hasattr(dto.doc_status, "value") else dto.doc_status,
            created_by_id=created_by_id,
        )

    def __repr__(self) -> str:
        return (
            f"<WithholdingRecordModel order={self.source_order_id} "
            f"amount={self.withholding_amount} status={self.doc_status}>"
        )


# ---------------------------------------------------------------------------
# PosPaymentReferenceModel
# ---------------------------------------------------------------------------

class PosPaymentReferenceModel(TrackedBase):
    """
    ORM model for ``PaymentReference``.

    Contract:
        Identified for upsert/delete by (order_id, tender_type,
        payment_method_id); the upsert path only matches unprocessed rows.
    """

    __tablename__ = "pos_payment_references"

    client_id: Mapped[UUID] = mapped_column(nullable=False)
    org_id: Mapped[UUID] = mapped_column(nullable=False)
    order_id: Mapped[UUID] = mapped_column(ForeignKey("orders.id"), nullable=False)
    pos_id: Mapped[UUID] = mapped_column(nullable=False)
    business_partner_id: Mapped[UUID] = mapped_column(nullable=False)
    currency_code: Mapped[str] = mapped_column(String(3), nullable=False)
    conversion_type_id: Mapped[UUID | None] = mapped_column(nullable=True)
    sales_rep_id: Mapped[UUID | None] = mapped_column(nullable=True)
    payment_method_id: Mapped[UUID] = mapped_column(
        ForeignKey("payment_methods.id"), nullable=False,
    )
    tender_type: Mapped[str] = mapped_column(String(1), nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    source_amount: Mapped[Decimal] = mapped_column(nullable=False)
    base_amount: Mapped[Decimal] = mapped_column(nullable=False)
    rate: Mapped[Decimal] = mapped_column(nullable=False)
    description: Mapped[str] = mapped_column(String(4000), nullable=False, default="")
    pay_date: Mapped[date] = mapped_column(Date, nullable=False)
    is_receipt: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    is_keep_reference_after_process: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False,
    )
    is_auto_created: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    processed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    __table_args__ = (
        Index(
            "idx_pos_payment_reference_key",
            "order_id", "tender_type", "payment_method_id",
        ),
    )

    def apply(self, dto, updated_by_id: UUID) -> None:
        """Overwrite every derived field from ``dto`` (processed is left alone)."""
        self.client_id = dto.client_id
        self.org_id = dto.org_id
        self.order_id = dto.order_id
        self.pos_id = dto.pos_id
        self.business_partner_id = dto.business_partner_id
        self.currency_code = dto.currency_code
        self.conversion_type_id = dto.conversion_type_id
        if dto.sales_rep_id is not None:
            self.sales_rep_id = dto.sales_rep_id
        self.payment_method_id = dto.payment_method_id
        self.tender_type = dto.tender_type
        self.amount = dto.amount
        self.source_amount = dto.source_amount
        self.base_amount = dto.base_amount
        self.rate = dto.rate
        self.description = dto.description
        self.pay_date = dto.pay_date
        self.is_receipt = dto.is_receipt
        self.is_keep_reference_after_process = dto.is_keep_reference_after_process
        self.is_auto_created = dto.is_auto_created
        self.updated_by_id = updated_by_id

    def to_dto(self):
        from withholding_modules.withholding.models import PaymentReference
        return PaymentReference(
            id=self.id,
            order_id=self.order_id,
            client_id=self.client_id,
            org_id=self.org_id,
            pos_id=self.pos_id,
            business_partner_id=self.business_partner_id,
            currency_code=self.currency_code,
            payment_method_id=self.payment_method_id,
            amount=self.amount,
            source_amount=self.source_amount,
            base_amount=self.base_amount,
            rate=self.rate,
            pay_date=self.pay_date,
            description=self.description,
            conversion_type_id=self.conversion_type_id,
            sales_rep_id=self.sales_rep_id,
            tender_type=self.tender_type,
            is_receipt=self.is_receipt,
            is_keep_reference_after_process=self.is_keep_reference_after_process,
            is_auto_created=self.is_auto_created,
            processed=self.processed,
        )

    @classmethod
    def from_dto(cls, dto, created_by_id: UUID) -> "PosPaymentReferenceModel":
        model = cls(processed=False, created_by_id=created_by_id)
        model.apply(dto, updated_by_id=created_by_id)
        return model
