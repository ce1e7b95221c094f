"""
WithholdingRepository -- reference data, existence checks and the three
withholding writes.

Responsibility:
    Owns every query and write on the withholding tables: tax definitions,
    rate lists and versions, payment methods and POS allocations, withholding
    records and POS payment references.  Returns frozen DTOs.

Architecture position:
    Modules > Withholding.  Used by ``RateResolver``, ``DuplicateDetector``,
    ``PaymentReferenceManager`` and the strategies.  Never commits: the
    caller (ultimately ``WithholdingService``) owns the transaction.

Invariants enforced:
    - Writes flush immediately so that database refusals surface inside the
      evaluation that caused them.
    - Every database error on a write is wrapped in a typed
      ``PersistenceError`` subclass and re-raised; nothing is swallowed.

Failure modes:
    - ``WithholdingRecordPersistError`` -- record insert refused.
    - ``PaymentReferencePersistError`` -- reference upsert or delete refused.

Audit relevance:
    Every write logs the affected order, the actor and the amounts.
"""

from __future__ import annotations

from collections.abc import Iterable
from uuid import UUID

from sqlalchemy import exists, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from withholding_kernel.exceptions import (
    PaymentReferencePersistError,
    WithholdingRecordPersistError,
)
from withholding_kernel.logging_config import get_logger
from withholding_modules.withholding.models import (
    TENDER_TYPE_CREDIT_MEMO,
    PaymentMethod,
    PaymentMethodAllocation,
    PaymentReference,
    RateList,
    RateListVersion,
    WithholdingRecord,
    WithholdingRegimeType,
    WithholdingTaxDefinition,
)
from withholding_modules.withholding.orm import (
    PaymentMethodModel,
    PosPaymentReferenceModel,
    PosPaymentTypeAllocationModel,
    RateListModel,
    RateListVersionModel,
    WithholdingRecordModel,
    WithholdingTaxDefinitionModel,
)

logger = get_logger("modules.withholding.repository")


class WithholdingRepository:
    """
    Data access for withholding reference data and outputs.

    Contract:
        Accepts a Session from the caller.  Read methods return DTOs or
        None.  Write methods flush and return the persisted DTO.

    Non-goals:
        - Does NOT commit or roll back.
        - Does NOT decide whether a write should happen; strategies and the
          payment-reference manager do.
    """

    def __init__(self, session: Session):
        self.session = session

    # -------------------------------------------------------------------------
    # Definitions and rate lists
    # -------------------------------------------------------------------------

    def get_definition(
        self,
        client_id: UUID,
        regime_type: WithholdingRegimeType,
    ) -> WithholdingTaxDefinition | None:
        """The client's withholding tax definition for a regime type."""
        stmt = select(WithholdingTaxDefinitionModel).where(
            WithholdingTaxDefinitionModel.client_id == client_id,
            WithholdingTaxDefinitionModel.regime_type == regime_type.value,
        )
        model = self.session.scalars(stmt).first()
        return model.to_dto() if model is not None else None

    def get_rate_list(self, rate_list_id: UUID) -> RateList | None:
        model = self.session.get(RateListModel, rate_list_id)
        return model.to_dto() if model is not None else None

    def get_rate_list_versions(self, rate_list_id: UUID) -> tuple[RateListVersion, ...]:
        stmt = (
            select(RateListVersionModel)
            .where(RateListVersionModel.rate_list_id == rate_list_id)
            .order_by(RateListVersionModel.valid_from)
        )
        return tuple(m.to_dto() for m in self.session.scalars(stmt))

    def get_rate_list_version(self, version_id: UUID) -> RateListVersion | None:
        model = self.session.get(RateListVersionModel, version_id)
        return model.to_dto() if model is not None else None

    # -------------------------------------------------------------------------
    # Withholding records
    # -------------------------------------------------------------------------

    def record_exists(
        self,
        source_order_id: UUID,
        definition_id: UUID,
        setting_id: UUID,
        doc_statuses: Iterable[str],
        processed: bool = True,
        is_simulation: bool = True,
    ) -> bool:
        """True when a record matches the source, definition, setting, flags and statuses."""
        stmt = select(
            exists().where(
                WithholdingRecordModel.source_order_id == source_order_id,
                WithholdingRecordModel.definition_id == definition_id,
                WithholdingRecordModel.setting_id == setting_id,
                WithholdingRecordModel.processed == processed,
                WithholdingRecordModel.is_simulation == is_simulation,
                WithholdingRecordModel.doc_status.in_(list(doc_statuses)),
            )
        )
        return bool(self.session.scalar(stmt))

    def get_records_for_order(self, source_order_id: UUID) -> tuple[WithholdingRecord, ...]:
        stmt = (
            select(WithholdingRecordModel)
            .where(WithholdingRecordModel.source_order_id == source_order_id)
            .order_by(WithholdingRecordModel.created_at)
        )
        return tuple(m.to_dto() for m in self.session.scalars(stmt))

    def save_record(self, record: WithholdingRecord, actor_id: UUID) -> WithholdingRecord:
        """
        Insert a withholding record.

        Postconditions:
            - The row is flushed and the returned DTO carries its id.

        Raises:
            WithholdingRecordPersistError: If the database refuses the insert.
        """
        model = WithholdingRecordModel.from_dto(record, created_by_id=actor_id)
        try:
            self.session.add(model)
            self.session.flush()
        except SQLAlchemyError as exc:
            logger.error(
                "withholding_record_persist_failed",
                extra={"source_order_id": str(record.source_order_id), "error": str(exc)},
            )
            raise WithholdingRecordPersistError(str(record.source_order_id), str(exc)) from exc

        logger.info(
            "withholding_record_saved",
            extra={
                "record_id": str(model.id),
                "source_order_id": str(record.source_order_id),
                "withholding_amount": str(record.withholding_amount),
                "base_amount": str(record.base_amount),
                "rate": str(record.withholding_rate),
            },
        )
        return model.to_dto()

    # -------------------------------------------------------------------------
    # Payment methods
    # -------------------------------------------------------------------------

    def find_payment_allocation(
        self,
        pos_id: UUID,
        withholding_type_id: UUID,
    ) -> PaymentMethodAllocation | None:
        """
        The POS's default credit-memo allocation for a withholding type.

        Matches an active allocation flagged as payment reference whose
        payment method has tender type credit memo and the given
        withholding type.
        """
        stmt = (
            select(PosPaymentTypeAllocationModel)
            .join(
                PaymentMethodModel,
                PaymentMethodModel.id == PosPaymentTypeAllocationModel.payment_method_id,
            )
            .where(
                PosPaymentTypeAllocationModel.pos_id == pos_id,
                PosPaymentTypeAllocationModel.is_payment_reference.is_(True),
                PosPaymentTypeAllocationModel.is_active.is_(True),
                PaymentMethodModel.tender_type == TENDER_TYPE_CREDIT_MEMO,
                PaymentMethodModel.withholding_type_id == withholding_type_id,
            )
            .order_by(PosPaymentTypeAllocationModel.id)
        )
        model = self.session.scalars(stmt).first()
        return model.to_dto() if model is not None else None

    def get_payment_method(self, payment_method_id: UUID) -> PaymentMethod | None:
        model = self.session.get(PaymentMethodModel, payment_method_id)
        return model.to_dto() if model is not None else None

    # -------------------------------------------------------------------------
    # POS payment references
    # -------------------------------------------------------------------------

    def _reference_query(self, order_id: UUID, payment_method_id: UUID):
        return (
            select(PosPaymentReferenceModel)
            .where(
                PosPaymentReferenceModel.order_id == order_id,
                PosPaymentReferenceModel.tender_type == TENDER_TYPE_CREDIT_MEMO,
                PosPaymentReferenceModel.payment_method_id == payment_method_id,
            )
            .order_by(PosPaymentReferenceModel.id)
        )

    def find_payment_reference(
        self,
        order_id: UUID,
        payment_method_id: UUID,
        unprocessed_only: bool = False,
    ) -> PaymentReference | None:
        stmt = self._reference_query(order_id, payment_method_id)
        if unprocessed_only:
            stmt = stmt.where(PosPaymentReferenceModel.processed.is_(False))
        model = self.session.scalars(stmt).first()
        return model.to_dto() if model is not None else None

    def count_payment_references(self, order_id: UUID, payment_method_id: UUID) -> int:
        stmt = self._reference_query(order_id, payment_method_id)
        return len(self.session.scalars(stmt).all())

    def upsert_payment_reference(
        self,
        values: PaymentReference,
        actor_id: UUID,
        create_if_missing: bool = True,
    ) -> PaymentReference | None:
        """
        Update the unprocessed reference for the key of ``values``, or create it.

        Postconditions:
            - Returns the written reference, or None when no unprocessed
              reference exists and ``create_if_missing`` is False.

        Raises:
            PaymentReferencePersistError: If the database refuses the write.
        """
        stmt = self._reference_query(values.order_id, values.payment_method_id).where(
            PosPaymentReferenceModel.processed.is_(False),
        )
        try:
            model = self.session.scalars(stmt).first()
            created = False
            if model is None:
                if not create_if_missing:
                    return None
                model = PosPaymentReferenceModel.from_dto(values, created_by_id=actor_id)
                self.session.add(model)
                created = True
            else:
                model.apply(values, updated_by_id=actor_id)
            self.session.flush()
        except SQLAlchemyError as exc:
            logger.error(
                "payment_reference_persist_failed",
                extra={"order_id": str(values.order_id), "operation": "upsert", "error": str(exc)},
            )
            raise PaymentReferencePersistError(str(values.order_id), "upsert", str(exc)) from exc

        logger.info(
            "payment_reference_created" if created else "payment_reference_updated",
            extra={
                "payment_reference_id": str(model.id),
                "order_id": str(values.order_id),
                "payment_method_id": str(values.payment_method_id),
                "amount": str(values.amount),
                "base_amount": str(values.base_amount),
            },
        )
        return model.to_dto()

    def delete_payment_reference(self, order_id: UUID, payment_method_id: UUID) -> UUID | None:
        """
        Delete the reference for (order, credit memo, method), whatever its
        processed state.

        Returns the id of the deleted reference, or None when there was none.

        Raises:
            PaymentReferencePersistError: If the database refuses the delete.
        """
        try:
            model = self.session.scalars(self._reference_query(order_id, payment_method_id)).first()
            if model is None:
                return None
            reference_id = model.id
            self.session.delete(model)
            self.session.flush()
        except SQLAlchemyError as exc:
            logger.error(
                "payment_reference_persist_failed",
                extra={"order_id": str(order_id), "operation": "delete", "error": str(exc)},
            )
            raise PaymentReferencePersistError(str(order_id), "delete", str(exc)) from exc

        logger.info(
            "payment_reference_deleted",
            extra={
                "payment_reference_id": str(reference_id),
                "order_id": str(order_id),
                "payment_method_id": str(payment_method_id),
            },
        )
        return reference_id
