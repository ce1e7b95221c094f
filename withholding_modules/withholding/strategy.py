"""
Withholding Strategy -- the two-phase validate-then-compute contract.

Responsibility:
    Defines ``WithholdingStrategy``, the abstract base every regime
    implements, and the immutable values that flow between its phases:

    * ``ValidationOutcome`` -- verdict, diagnostics and return values of
      ``validate``, plus the ``EvaluationContext`` when applicable.
    * ``EvaluationContext`` -- everything ``compute`` needs, resolved once
      during validation.
    * ``ComputationOutcome`` -- totals and the writes ``compute`` made.
    * ``EvaluationResult`` -- the combined report handed back to callers.

Architecture:
    withholding_modules -- ERP glue (this layer).
    Strategies read host data through ``LedgerGateway``, reference data
    through ``WithholdingRepository`` and do arithmetic through
    ``withholding_engines``.  A strategy instance is bound to one setting
    and keeps no state between evaluations: validation builds a fresh
    context and computation consumes it.

Invariants:
    - Unmet preconditions are diagnostics, never exceptions.
    - ``compute`` runs only for an applicable outcome.
    - Return values (source order id, org id) are populated as validation
      proceeds, including on failure.

Failure modes:
    - Persistence errors raised during ``compute`` (or during a fail-fast
      payment-reference cleanup in ``validate``) propagate unchanged.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import ClassVar
from uuid import UUID

from withholding_config.schema import Regime, WithholdingSettingDef
from withholding_engines.accumulator import AccumulatedTotals, WithholdingContribution
from withholding_kernel.logging_config import get_logger
from withholding_modules.ledger.gateway import LedgerGateway
from withholding_modules.ledger.models import (
    BusinessPartner,
    Document,
    Order,
    OrderTax,
    Tax,
)
from withholding_modules.withholding.messages import ValidationDiagnostic
from withholding_modules.withholding.models import (
    PaymentMethodAllocation,
    WithholdingTaxDefinition,
)
from withholding_modules.withholding.payment_reference import PaymentReferenceSync
from withholding_modules.withholding.rates import RateResolver
from withholding_modules.withholding.repository import WithholdingRepository

logger = get_logger("modules.withholding.strategy")

_ZERO = Decimal("0")


class SkipReason(str, Enum):
    """Why an evaluation stopped early without reporting a diagnostic."""

    UNSUPPORTED_DOCUMENT = "unsupported_document"
    NO_EVENT_TRIGGER = "no_event_trigger"
    NO_RELEVANT_CHANGE = "no_relevant_change"
    NOT_POS_ORDER = "not_pos_order"
    ORDER_PROCESSED = "order_processed"
    PARTNER_NOT_TAXPAYER = "partner_not_taxpayer"
    WITHHOLDING_EXEMPT = "withholding_exempt"
    NO_RATE_REFERENCE = "no_rate_reference"
    ZERO_RATE = "zero_rate"


@dataclass(frozen=True)
class ReturnValues:
    """Values an evaluation reports back to the host, even when it fails."""

    source_order_id: UUID | None = None
    org_id: UUID | None = None

    @classmethod
    def for_order(cls, order: Order) -> ReturnValues:
        return cls(source_order_id=order.id, org_id=order.org_id)


@dataclass(frozen=True)
class ApplicableTax:
    """An order tax line that VAT withholding applies to, with its tax."""

    order_tax: OrderTax
    tax: Tax


@dataclass(frozen=True)
class EvaluationContext:
    """
    Everything computation needs, resolved during validation.

    ``rate`` is a fraction.  ``precision`` and ``base_amount`` are only
    meaningful for the municipal regime; ``applicable_taxes`` and
    ``allocation`` only for POS VAT.
    """

    setting: WithholdingSettingDef
    order: Order
    partner: BusinessPartner
    definition: WithholdingTaxDefinition
    rate: Decimal
    is_manual: bool
    precision: int = 2
    base_amount: Decimal = _ZERO
    description: str = ""
    applicable_taxes: tuple[ApplicableTax, ...] = ()
    allocation: PaymentMethodAllocation | None = None


@dataclass(frozen=True)
class ValidationOutcome:
    """
    Result of ``validate``.

    Contract:
        ``is_applicable`` is True only when ``context`` is set and no
        diagnostic was reported.  ``bool(outcome)`` mirrors it.
    """

    is_applicable: bool
    diagnostic_items: tuple[ValidationDiagnostic, ...] = ()
    return_values: ReturnValues = field(default_factory=ReturnValues)
    context: EvaluationContext | None = None
    skip_reason: SkipReason | None = None
    payment_reference: PaymentReferenceSync | None = None

    @property
    def diagnostics(self) -> tuple[str, ...]:
        return tuple(d.message for d in self.diagnostic_items)

    @property
    def diagnostic_codes(self) -> tuple[str, ...]:
        return tuple(d.code for d in self.diagnostic_items)

    def __bool__(self) -> bool:
        return self.is_applicable

    @classmethod
    def applicable(
        cls,
        context: EvaluationContext,
        return_values: ReturnValues,
    ) -> ValidationOutcome:
        return cls(is_applicable=True, return_values=return_values, context=context)

    @classmethod
    def failed(
        cls,
        diagnostics: list[ValidationDiagnostic] | tuple[ValidationDiagnostic, ...],
        return_values: ReturnValues | None = None,
    ) -> ValidationOutcome:
        return cls(
            is_applicable=False,
            diagnostic_items=tuple(diagnostics),
            return_values=return_values or ReturnValues(),
        )

    @classmethod
    def skipped(
        cls,
        reason: SkipReason,
        return_values: ReturnValues | None = None,
        payment_reference: PaymentReferenceSync | None = None,
    ) -> ValidationOutcome:
        return cls(
            is_applicable=False,
            return_values=return_values or ReturnValues(),
            skip_reason=reason,
            payment_reference=payment_reference,
        )


@dataclass(frozen=True)
class ComputationOutcome:
    """What ``compute`` accumulated and wrote."""

    totals: AccumulatedTotals
    record_ids: tuple[UUID, ...] = ()
    payment_reference: PaymentReferenceSync | None = None


@dataclass(frozen=True)
class EvaluationResult:
    """
    Report of one strategy run for one document and setting.

    ``payment_reference_id`` is the id of the reference written or, when
    ``payment_reference_deleted`` is True, of the one removed.
    """

    setting_id: UUID
    regime: str
    is_applicable: bool
    diagnostic_items: tuple[ValidationDiagnostic, ...] = ()
    return_values: ReturnValues = field(default_factory=ReturnValues)
    skip_reason: SkipReason | None = None
    is_manual: bool = False
    contributions: tuple[WithholdingContribution, ...] = ()
    record_ids: tuple[UUID, ...] = ()
    payment_reference_id: UUID | None = None
    payment_reference_deleted: bool = False
    rate: Decimal = _ZERO
    base_amount: Decimal = _ZERO
    withholding_amount: Decimal = _ZERO
    description: str = ""

    @property
    def diagnostics(self) -> tuple[str, ...]:
        return tuple(d.message for d in self.diagnostic_items)

    @property
    def diagnostic_codes(self) -> tuple[str, ...]:
        return tuple(d.code for d in self.diagnostic_items)


class WithholdingStrategy(ABC):
    """
    Base class for a withholding regime.

    Contract:
        Subclasses implement ``validate`` and ``compute``; ``evaluate`` runs
        them in order and assembles the ``EvaluationResult``.

    Guarantees:
        - ``compute`` is only called with the context of an applicable
          outcome.
        - The strategy keeps no per-evaluation state on the instance.

    Non-goals:
        - Does NOT manage the transaction; ``WithholdingService`` does.
    """

    regime: ClassVar[Regime]

    def __init__(
        self,
        setting: WithholdingSettingDef,
        gateway: LedgerGateway,
        repository: WithholdingRepository,
        actor_id: UUID,
    ):
        self.setting = setting
        self._gateway = gateway
        self._repository = repository
        self._actor_id = actor_id
        self._rates = RateResolver(repository)

    @abstractmethod
    def validate(self, document: Document) -> ValidationOutcome:
        """Run the regime's ordered checks against ``document``."""

    @abstractmethod
    def compute(self, context: EvaluationContext) -> ComputationOutcome:
        """Accumulate and persist the withholding described by ``context``."""

    def evaluate(self, document: Document) -> EvaluationResult:
        """
        Validate ``document`` and, when applicable, compute and persist.

        Postconditions:
            - Not applicable: no withholding record is written; any
              payment-reference cleanup done by validation is reported.
            - Applicable: the result carries the totals, contributions and
              ids of everything written.
        """
        outcome = self.validate(document)
        if not outcome.is_applicable:
            if outcome.diagnostic_items:
                logger.info(
                    "withholding_validation_failed",
                    extra={
                        "setting_id": str(self.setting.id),
                        "regime": self.regime.value,
                        "diagnostic_codes": list(outcome.diagnostic_codes),
                    },
                )
            else:
                logger.info(
                    "withholding_skipped",
                    extra={
                        "setting_id": str(self.setting.id),
                        "regime": self.regime.value,
                        "skip_reason": outcome.skip_reason.value if outcome.skip_reason else None,
                    },
                )
            sync = outcome.payment_reference or PaymentReferenceSync()
            return EvaluationResult(
                setting_id=self.setting.id,
                regime=self.regime.value,
                is_applicable=False,
                diagnostic_items=outcome.diagnostic_items,
                return_values=outcome.return_values,
                skip_reason=outcome.skip_reason,
                payment_reference_id=sync.reference_id,
                payment_reference_deleted=sync.deleted,
            )

        context = outcome.context
        computed = self.compute(context)
        totals = computed.totals
        sync = computed.payment_reference or PaymentReferenceSync()
        logger.info(
            "withholding_computed",
            extra={
                "setting_id": str(self.setting.id),
                "regime": self.regime.value,
                "order_id": str(context.order.id),
                "rate": str(totals.rate),
                "base_amount": str(totals.base_amount),
                "withholding_amount": str(totals.withholding_amount),
                "contribution_count": len(totals.contributions),
                "record_count": len(computed.record_ids),
            },
        )
        return EvaluationResult(
            setting_id=self.setting.id,
            regime=self.regime.value,
            is_applicable=True,
            return_values=outcome.return_values,
            is_manual=context.is_manual,
            contributions=totals.contributions,
            record_ids=computed.record_ids,
            payment_reference_id=sync.reference_id,
            payment_reference_deleted=sync.deleted,
            rate=totals.rate,
            base_amount=totals.base_amount,
            withholding_amount=totals.withholding_amount,
            description=totals.description,
        )

    # -------------------------------------------------------------------------
    # Shared steps
    # -------------------------------------------------------------------------

    def _resolve_partner(self, order: Order) -> tuple[BusinessPartner | None, bool]:
        """
        The partner withholding is filed under, and whether it is manual.

        Sales orders are filed under the organization's withholding partner
        whenever organization info exists, even if that info names no
        partner.  Purchase orders keep their own partner.
        """
        partner = self._gateway.get_business_partner(order.business_partner_id)
        if not order.is_sotrx:
            return partner, False
        org_info = self._gateway.get_organization_info(order.org_id)
        if org_info is not None:
            partner = self._gateway.get_business_partner(org_info.withholding_partner_id)
        return partner, True
