"""
Municipal activity-tax withholding on completed orders.

Validation collects every unmet precondition instead of stopping at the
first one, so the host sees the full list of reasons an order was not
withheld.  Only two checks stop early: the document must be an order, and
an order without a resolvable partner skips the partner-dependent checks.

The withheld amount is ``total lines x rate`` rounded half-up to the
currency's standard precision, and is saved as one simulated draft
record.  A rate of zero leaves nothing to save.
"""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from withholding_config.schema import Regime, WithholdingSettingDef
from withholding_engines.accumulator import AmountAccumulator
from withholding_kernel.db.types import round_amount
from withholding_kernel.logging_config import get_logger
from withholding_modules.ledger.gateway import LedgerGateway
from withholding_modules.ledger.models import Document, DocumentStatus, Order
from withholding_modules.withholding.duplicates import DuplicateDetector
from withholding_modules.withholding.messages import DiagnosticCode, diagnostic
from withholding_modules.withholding.models import (
    WithholdingRecord,
    WithholdingRegimeType,
)
from withholding_modules.withholding.repository import WithholdingRepository
from withholding_modules.withholding.strategy import (
    ComputationOutcome,
    EvaluationContext,
    ReturnValues,
    ValidationOutcome,
    WithholdingStrategy,
)

logger = get_logger("modules.withholding.municipal")

_ZERO = Decimal("0")


class MunicipalWithholdingStrategy(WithholdingStrategy):
    """Municipal activity tax (IM) withheld from completed orders."""

    regime = Regime.MUNICIPAL

    def __init__(
        self,
        setting: WithholdingSettingDef,
        gateway: LedgerGateway,
        repository: WithholdingRepository,
        actor_id: UUID,
    ):
        super().__init__(setting, gateway, repository, actor_id)
        self._duplicates = DuplicateDetector(repository)

    def validate(self, document: Document) -> ValidationOutcome:
        if not isinstance(document, Order):
            return ValidationOutcome.failed([diagnostic(DiagnosticCode.ORDER_NOT_FOUND)])

        order = document
        return_values = ReturnValues.for_order(order)

        partner, is_manual = self._resolve_partner(order)
        if partner is None:
            return ValidationOutcome.failed(
                [diagnostic(DiagnosticCode.PARTNER_NOT_FOUND)], return_values,
            )

        diagnostics = []

        precision = 2
        currency = self._gateway.get_currency(order.currency_code)
        if currency is None:
            diagnostics.append(
                diagnostic(DiagnosticCode.CURRENCY_NOT_FOUND, currency_code=order.currency_code)
            )
        else:
            precision = currency.std_precision
        base_amount = order.total_lines

        definition = self._repository.get_definition(
            order.client_id, WithholdingRegimeType.MUNICIPAL,
        )
        if definition is None:
            diagnostics.append(diagnostic(DiagnosticCode.DEFINITION_NOT_FOUND))
        elif definition.is_client_excluded:
            diagnostics.append(
                diagnostic(DiagnosticCode.CLIENT_EXCLUDED, definition_name=definition.name)
            )

        if order.doc_status != DocumentStatus.COMPLETED:
            diagnostics.append(
                diagnostic(DiagnosticCode.INVALID_DOC_STATUS, doc_status=order.doc_status.value)
            )

        if self._gateway.get_document_type(order.doc_type_target_id) is None:
            diagnostics.append(diagnostic(DiagnosticCode.DOC_TYPE_NOT_FOUND))

        if partner.is_withholding_municipal_exempt:
            diagnostics.append(diagnostic(DiagnosticCode.PARTNER_MUNICIPAL_EXEMPT))

        activity = None
        if partner.business_activity_id is not None:
            activity = self._repository.get_rate_list(partner.business_activity_id)
        if activity is None:
            diagnostics.append(diagnostic(DiagnosticCode.ACTIVITY_NOT_FOUND))

        rate_version = None
        if partner.municipal_rate_version_id is not None:
            rate_version = self._repository.get_rate_list_version(
                partner.municipal_rate_version_id,
            )
        if rate_version is None:
            diagnostics.append(diagnostic(DiagnosticCode.MUNICIPAL_RATE_NOT_FOUND))

        if self._duplicates.exists(order.id, self.setting.definition_id, self.setting.id):
            diagnostics.append(
                diagnostic(DiagnosticCode.ALREADY_GENERATED, document_no=order.document_no)
            )

        if diagnostics:
            return ValidationOutcome.failed(diagnostics, return_values)

        context = EvaluationContext(
            setting=self.setting,
            order=order,
            partner=partner,
            definition=definition,
            rate=self._rates.resolve_version(rate_version.id),
            is_manual=is_manual,
            precision=precision,
            base_amount=base_amount,
            description=activity.name,
        )
        return ValidationOutcome.applicable(context, return_values)

    def compute(self, context: EvaluationContext) -> ComputationOutcome:
        accumulator = AmountAccumulator()
        if context.rate == _ZERO:
            logger.info(
                "municipal_rate_zero",
                extra={"order_id": str(context.order.id), "setting_id": str(self.setting.id)},
            )
            return ComputationOutcome(totals=accumulator.totals())

        accumulator.set_rate(context.rate)
        withheld = round_amount(context.base_amount * context.rate, context.precision)
        accumulator.contribute(context.base_amount, withheld, context.description)
        totals = accumulator.totals()

        record = WithholdingRecord(
            source_order_id=context.order.id,
            org_id=context.order.org_id,
            definition_id=self.setting.definition_id,
            setting_id=self.setting.id,
            withholding_rate=totals.rate,
            base_amount=totals.base_amount,
            withholding_amount=totals.withholding_amount,
            description=totals.description,
            is_manual=context.is_manual,
            is_simulation=True,
            third_party_id=context.order.third_party_id,
            processed=False,
            doc_status=DocumentStatus.DRAFTED,
        )
        saved = self._repository.save_record(record, actor_id=self._actor_id)
        return ComputationOutcome(totals=totals, record_ids=(saved.id,))
