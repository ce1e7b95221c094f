"""
VAT withholding on point-of-sale orders and order lines.

Runs when a POS order or one of its lines is saved.  The computed
withholding is not stored as a record: it becomes a credit-memo payment
reference on the order, kept in step with every save.  Whenever a save
leaves the order outside the regime (partner no longer a taxpayer, an
exemption, no rate) the reference is deleted before evaluation stops.

Per-line amounts are ``tax amount x rate`` and are NOT rounded; the host
rounds when it settles the reference.
"""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from withholding_config.schema import ModelEvent, Regime, WithholdingSettingDef
from withholding_engines.accumulator import AmountAccumulator
from withholding_kernel.exceptions import DocumentNotFoundError
from withholding_kernel.logging_config import get_logger
from withholding_modules.ledger.gateway import LedgerGateway
from withholding_modules.ledger.models import (
    Document,
    Order,
    OrderField,
    OrderLine,
)
from withholding_modules.withholding.messages import DiagnosticCode, diagnostic
from withholding_modules.withholding.models import WithholdingRegimeType
from withholding_modules.withholding.payment_reference import PaymentReferenceManager
from withholding_modules.withholding.repository import WithholdingRepository
from withholding_modules.withholding.strategy import (
    ApplicableTax,
    ComputationOutcome,
    EvaluationContext,
    ReturnValues,
    SkipReason,
    ValidationOutcome,
    WithholdingStrategy,
)

logger = get_logger("modules.withholding.pos_vat")

_ZERO = Decimal("0")


class PosVatWithholdingStrategy(WithholdingStrategy):
    """VAT withholding (IVA) derived into a POS payment reference."""

    regime = Regime.POS_VAT

    def __init__(
        self,
        setting: WithholdingSettingDef,
        gateway: LedgerGateway,
        repository: WithholdingRepository,
        actor_id: UUID,
    ):
        super().__init__(setting, gateway, repository, actor_id)
        self._payments = PaymentReferenceManager(repository, actor_id)

    def _cleanup(self, order: Order, reason: SkipReason, return_values=None) -> ValidationOutcome:
        sync = self._payments.delete(order, self.setting.withholding_type_id)
        logger.info(
            "pos_vat_reference_cleanup",
            extra={
                "order_id": str(order.id),
                "skip_reason": reason.value,
                "deleted": sync.deleted,
            },
        )
        return ValidationOutcome.skipped(reason, return_values, payment_reference=sync)

    def _resolve_order(self, document: Document) -> Order | SkipReason:
        event = self.setting.event_model_validator
        if isinstance(document, OrderLine):
            line_changed = (
                document.is_changed(OrderField.LINE_NET_AMOUNT)
                or document.is_changed(OrderField.TAX)
            )
            if not line_changed and event != ModelEvent.TABLE_AFTER_NEW.value:
                return SkipReason.NO_RELEVANT_CHANGE
            order = self._gateway.get_order(document.order_id)
            if order is None:
                raise DocumentNotFoundError(Order.TABLE_NAME, str(document.order_id))
            return order
        if not (
            document.is_changed(OrderField.DOC_TYPE_TARGET)
            or document.is_changed(OrderField.BUSINESS_PARTNER)
        ):
            return SkipReason.NO_RELEVANT_CHANGE
        return document

    def validate(self, document: Document) -> ValidationOutcome:
        if not isinstance(document, (Order, OrderLine)):
            return ValidationOutcome.skipped(SkipReason.UNSUPPORTED_DOCUMENT)
        if not self.setting.event_model_validator:
            return ValidationOutcome.skipped(SkipReason.NO_EVENT_TRIGGER)

        resolved = self._resolve_order(document)
        if isinstance(resolved, SkipReason):
            return ValidationOutcome.skipped(resolved)
        order = resolved

        if order.pos_id is None:
            return ValidationOutcome.skipped(SkipReason.NOT_POS_ORDER)
        if order.is_processed:
            return ValidationOutcome.skipped(SkipReason.ORDER_PROCESSED)

        order_partner = self._gateway.get_business_partner(order.business_partner_id)
        if order_partner is None or not order_partner.is_taxpayer:
            return self._cleanup(order, SkipReason.PARTNER_NOT_TAXPAYER)

        return_values = ReturnValues.for_order(order)
        partner, is_manual = self._resolve_partner(order)
        diagnostics = []
        definition = None
        rate = _ZERO
        applicable_taxes: tuple[ApplicableTax, ...] = ()

        if partner is None:
            diagnostics.append(diagnostic(DiagnosticCode.PARTNER_NOT_FOUND))
        else:
            definition = self._repository.get_definition(
                order.client_id, WithholdingRegimeType.VAT,
            )
            if definition is None:
                diagnostics.append(diagnostic(DiagnosticCode.DEFINITION_NOT_FOUND))
            elif definition.is_client_excluded:
                diagnostics.append(
                    diagnostic(DiagnosticCode.CLIENT_EXCLUDED, definition_name=definition.name)
                )

            if self._gateway.get_document_type(order.doc_type_target_id) is None:
                diagnostics.append(diagnostic(DiagnosticCode.DOC_TYPE_NOT_FOUND))

            if order.is_withholding_tax_exempt or partner.is_withholding_tax_exempt:
                return self._cleanup(order, SkipReason.WITHHOLDING_EXEMPT, return_values)

            rate_list_id = partner.withholding_tax_rate_id
            if rate_list_id is None and definition is not None:
                rate_list_id = definition.default_rate_list_id
            if rate_list_id is None:
                return self._cleanup(order, SkipReason.NO_RATE_REFERENCE, return_values)

            rate = self._rates.resolve(rate_list_id, order.date_ordered)
            if rate == _ZERO:
                return self._cleanup(order, SkipReason.ZERO_RATE, return_values)

            tribute_unit = (
                definition.valid_tribute_unit_amount(order.date_acct)
                if definition is not None else _ZERO
            )
            if tribute_unit <= _ZERO:
                diagnostics.append(diagnostic(DiagnosticCode.TRIBUTE_UNIT_NOT_FOUND))

            applicable_taxes = self._applicable_taxes(order)

        allocation = self._payments.find_allocation(order, self.setting.withholding_type_id)
        if allocation is None:
            diagnostics.append(diagnostic(DiagnosticCode.PAYMENT_METHOD_NOT_FOUND))

        if diagnostics:
            return ValidationOutcome.failed(diagnostics, return_values)

        context = EvaluationContext(
            setting=self.setting,
            order=order,
            partner=partner,
            definition=definition,
            rate=rate,
            is_manual=is_manual,
            applicable_taxes=applicable_taxes,
            allocation=allocation,
        )
        return ValidationOutcome.applicable(context, return_values)

    def _applicable_taxes(self, order: Order) -> tuple[ApplicableTax, ...]:
        """Tax lines whose tax is withholding-applicable and whose amount is positive."""
        applicable = []
        for order_tax in self._gateway.get_order_taxes(order.id):
            if order_tax.tax_amount is None or order_tax.tax_amount <= _ZERO:
                continue
            tax = self._gateway.get_tax(order_tax.tax_id)
            if tax is not None and tax.is_withholding_tax_applied:
                applicable.append(ApplicableTax(order_tax=order_tax, tax=tax))
        return tuple(applicable)

    def compute(self, context: EvaluationContext) -> ComputationOutcome:
        accumulator = AmountAccumulator()
        for item in context.applicable_taxes:
            tax_amount = item.order_tax.tax_amount
            accumulator.set_rate(context.rate)
            accumulator.contribute(
                base_amount=tax_amount,
                withholding_amount=tax_amount * context.rate,
                description=item.tax.name,
                tax_id=item.tax.id,
            )
        totals = accumulator.totals()
        sync = self._payments.sync(context.order, self.setting.withholding_type_id, totals)
        return ComputationOutcome(totals=totals, payment_reference=sync)
