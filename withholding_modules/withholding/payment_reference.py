"""
PaymentReferenceManager -- the credit-memo reference derived from a POS VAT
withholding.

Responsibility:
    Keeps at most one payment reference per (order, credit memo tender
    type, payment method) in step with the latest VAT withholding computed
    for a POS order: upserted while a positive amount is withheld, deleted
    as soon as it is not.

Architecture position:
    Modules > Withholding.  Called by the POS VAT strategy during both
    validation (fail-fast cleanup) and computation (sync).

Invariants enforced:
    - The payment method is always the POS's default credit-memo allocation
      for the setting's withholding type.  Without such an allocation both
      ``sync`` and ``delete`` are no-ops.
    - Upsert matches only unprocessed references; delete matches any.
    - The reference is paid by the order's own business partner, on the
      order date, in the order's organization.

Failure modes:
    - ``PaymentReferencePersistError`` propagates from the repository.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from withholding_engines.accumulator import AccumulatedTotals
from withholding_kernel.logging_config import get_logger
from withholding_modules.ledger.models import Order
from withholding_modules.withholding.models import (
    TENDER_TYPE_CREDIT_MEMO,
    PaymentMethodAllocation,
    PaymentReference,
)
from withholding_modules.withholding.repository import WithholdingRepository

logger = get_logger("modules.withholding.payment_reference")

_ZERO = Decimal("0")


@dataclass(frozen=True)
class PaymentReferenceSync:
    """What a sync or delete did to the reference."""

    reference_id: UUID | None = None
    deleted: bool = False


class PaymentReferenceManager:
    """
    Upserts and deletes the derived POS payment reference.

    Contract:
        Stateless apart from the repository and actor it is built with.

    Non-goals:
        - Does NOT decide applicability; strategies call ``delete`` on
          their fail-fast exits and ``sync`` after computation.
    """

    def __init__(self, repository: WithholdingRepository, actor_id: UUID):
        self._repository = repository
        self._actor_id = actor_id

    def find_allocation(
        self,
        order: Order,
        withholding_type_id: UUID,
    ) -> PaymentMethodAllocation | None:
        """The POS's default credit-memo allocation for the withholding type."""
        if order.pos_id is None:
            return None
        return self._repository.find_payment_allocation(order.pos_id, withholding_type_id)

    def describe(self, allocation: PaymentMethodAllocation, order: Order) -> str:
        """``"<allocation name> of <document no>"``, falling back to the method description."""
        label = allocation.name
        if not label:
            method = self._repository.get_payment_method(allocation.payment_method_id)
            label = method.description if method is not None else None
        if not label:
            return ""
        return f"{label} of {order.document_no}"

    def sync(
        self,
        order: Order,
        withholding_type_id: UUID,
        totals: AccumulatedTotals,
        create_if_missing: bool = True,
    ) -> PaymentReferenceSync:
        """
        Bring the reference in line with ``totals``.

        Postconditions:
            - withheld > 0: the unprocessed reference for the key holds the
              totals (created when missing and ``create_if_missing``).
            - withheld <= 0: any reference for the key is deleted.
            - no allocation: nothing is written.
        """
        if totals.withholding_amount <= _ZERO:
            return self.delete(order, withholding_type_id)

        allocation = self.find_allocation(order, withholding_type_id)
        if allocation is None:
            logger.info("payment_reference_skipped", extra={"order_id": str(order.id)})
            return PaymentReferenceSync()

        values = PaymentReference(
            order_id=order.id,
            client_id=order.client_id,
            org_id=order.org_id,
            pos_id=order.pos_id,
            business_partner_id=order.business_partner_id,
            currency_code=order.currency_code,
            payment_method_id=allocation.payment_method_id,
            amount=totals.withholding_amount,
            source_amount=totals.withholding_amount,
            base_amount=totals.base_amount,
            rate=totals.rate,
            pay_date=order.date_ordered,
            description=self.describe(allocation, order),
            conversion_type_id=order.conversion_type_id,
            sales_rep_id=order.sales_rep_id,
            tender_type=TENDER_TYPE_CREDIT_MEMO,
            is_receipt=True,
            is_keep_reference_after_process=False,
            is_auto_created=True,
        )
        reference = self._repository.upsert_payment_reference(
            values, actor_id=self._actor_id, create_if_missing=create_if_missing,
        )
        return PaymentReferenceSync(reference_id=reference.id if reference is not None else None)

    def delete(self, order: Order, withholding_type_id: UUID) -> PaymentReferenceSync:
        """Delete the reference for the order's key, processed or not."""
        allocation = self.find_allocation(order, withholding_type_id)
        if allocation is None:
            return PaymentReferenceSync()
        deleted_id = self._repository.delete_payment_reference(
            order.id, allocation.payment_method_id,
        )
        return PaymentReferenceSync(reference_id=deleted_id, deleted=deleted_id is not None)
