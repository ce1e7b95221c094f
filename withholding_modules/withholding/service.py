"""
Withholding Service -- dispatches host document events to withholding
strategies.

Responsibility:
    Thin glue between the host ledger's save events and the regime
    strategies.  Loads the triggering document, selects every active
    setting bound to the event and table, builds one strategy per setting
    and runs it.  This service owns ONLY the transaction boundary.

Architecture:
    withholding_modules -- ERP glue (this layer).
    1. Reads documents through ``LedgerGateway``.
    2. Builds ``MunicipalWithholdingStrategy`` / ``PosVatWithholdingStrategy``
       per setting (strategy registry keyed by ``Regime``).
    3. Writes happen inside the strategies through ``WithholdingRepository``.

Invariants:
    - With ``auto_commit=True`` the session is committed when every
      evaluation of a call succeeded and rolled back otherwise.
    - With ``auto_commit=False`` the caller owns the transaction; writes are
      flushed only.
    - Exceptions always propagate after the optional rollback.

Failure modes:
    - ``DocumentNotFoundError`` -- the event names an unknown order / line.
    - ``SettingNotFoundError`` -- ``evaluate`` got an unknown setting id.
    - ``UnsupportedRegimeError`` -- a setting names a regime with no strategy.
    - ``PersistenceError`` subclasses -- a write was refused.

Audit relevance:
    Every evaluation runs inside ``LogContext.bind`` with a correlation id,
    the document, setting, actor and regime, and logs its duration.

Usage:
    service = WithholdingService(session, actor_id=actor_id, auto_commit=True)
    results = service.on_order_event(
        order_id, ModelEvent.DOCUMENT_AFTER_COMPLETE,
    )
"""

from __future__ import annotations

import time
from collections.abc import Iterable, Sequence
from uuid import UUID, uuid4

from sqlalchemy.orm import Session

from withholding_config import get_active_settings
from withholding_config.schema import ModelEvent, Regime, WithholdingSettingDef
from withholding_kernel.exceptions import (
    DocumentNotFoundError,
    SettingNotFoundError,
    UnsupportedRegimeError,
)
from withholding_kernel.logging_config import LogContext, get_logger
from withholding_modules.ledger.gateway import LedgerGateway
from withholding_modules.ledger.models import Document, Order, OrderLine
from withholding_modules.withholding.municipal import MunicipalWithholdingStrategy
from withholding_modules.withholding.pos_vat import PosVatWithholdingStrategy
from withholding_modules.withholding.repository import WithholdingRepository
from withholding_modules.withholding.strategy import EvaluationResult, WithholdingStrategy

logger = get_logger("modules.withholding.service")

STRATEGIES: dict[Regime, type[WithholdingStrategy]] = {
    Regime.MUNICIPAL: MunicipalWithholdingStrategy,
    Regime.POS_VAT: PosVatWithholdingStrategy,
}


class WithholdingService:
    """
    Runs withholding evaluations for host document events.

    Contract:
        Callers supply a ``Session`` and the acting user.  ``settings``
        defaults to the active settings of the order's client from
        ``withholding_config``.

    Guarantees:
        - Every call commits on success and rolls back on any failure when
          ``auto_commit`` is True.
        - A fresh strategy is built for every evaluation.

    Non-goals:
        - Does NOT post withholding documents or settle payment references.
    """

    def __init__(
        self,
        session: Session,
        actor_id: UUID,
        settings: Iterable[WithholdingSettingDef] | None = None,
        auto_commit: bool = False,
    ):
        self._session = session
        self._actor_id = actor_id
        self._settings = tuple(settings) if settings is not None else None
        self._auto_commit = auto_commit
        self._gateway = LedgerGateway(session)
        self._repository = WithholdingRepository(session)

    # =========================================================================
    # Settings and strategies
    # =========================================================================

    def settings_for(self, client_id: UUID) -> tuple[WithholdingSettingDef, ...]:
        if self._settings is not None:
            return tuple(s for s in self._settings if s.is_active)
        return get_active_settings(str(client_id))

    def build_strategy(self, setting: WithholdingSettingDef) -> WithholdingStrategy:
        """
        Strategy instance for ``setting``.

        Raises:
            UnsupportedRegimeError: If the setting's regime has no strategy.
        """
        try:
            regime = Regime(setting.regime)
        except ValueError:
            raise UnsupportedRegimeError(setting.regime, str(setting.id)) from None
        strategy_class = STRATEGIES.get(regime)
        if strategy_class is None:
            raise UnsupportedRegimeError(setting.regime, str(setting.id))
        return strategy_class(setting, self._gateway, self._repository, self._actor_id)

    def _find_setting(self, setting_id: UUID, client_id: UUID) -> WithholdingSettingDef:
        for setting in self.settings_for(client_id):
            if setting.id == setting_id:
                return setting
        raise SettingNotFoundError(str(setting_id))

    # =========================================================================
    # Entry points
    # =========================================================================

    def evaluate(
        self,
        document: Document,
        setting: WithholdingSettingDef | UUID,
    ) -> EvaluationResult:
        """
        Run one setting's strategy against ``document``.

        Preconditions:
            - ``setting`` is a setting definition, or the id of an active
              setting of the document's client.
        Postconditions:
            - With ``auto_commit``: committed on success, rolled back and
              re-raised on failure.
        Raises:
            SettingNotFoundError, UnsupportedRegimeError, PersistenceError.
        """
        if not isinstance(setting, WithholdingSettingDef):
            setting = self._find_setting(setting, self._client_of(document))
        return self._within_transaction(lambda: [self._run(document, setting)])[0]

    def on_order_event(
        self,
        order_id: UUID,
        event: ModelEvent | str,
        changed_fields: Iterable[str] = (),
    ) -> list[EvaluationResult]:
        """
        Evaluate every setting bound to ``event`` on the orders table.

        Raises:
            DocumentNotFoundError: If the order does not exist.
        """
        order = self._gateway.get_order(order_id, changed_fields)
        if order is None:
            raise DocumentNotFoundError(Order.TABLE_NAME, str(order_id))
        return self._dispatch(order, order.client_id, event)

    def on_order_line_event(
        self,
        line_id: UUID,
        event: ModelEvent | str,
        changed_fields: Iterable[str] = (),
    ) -> list[EvaluationResult]:
        """
        Evaluate every setting bound to ``event`` on the order lines table.

        Raises:
            DocumentNotFoundError: If the line or its order does not exist.
        """
        line = self._gateway.get_order_line(line_id, changed_fields)
        if line is None:
            raise DocumentNotFoundError(OrderLine.TABLE_NAME, str(line_id))
        return self._dispatch(line, self._client_of(line), event)

    # =========================================================================
    # Internals
    # =========================================================================

    def _client_of(self, document: Document) -> UUID:
        if isinstance(document, OrderLine):
            order = self._gateway.get_order(document.order_id)
            if order is None:
                raise DocumentNotFoundError(Order.TABLE_NAME, str(document.order_id))
            return order.client_id
        return document.client_id

    def _dispatch(
        self,
        document: Document,
        client_id: UUID,
        event: ModelEvent | str,
    ) -> list[EvaluationResult]:
        matching: Sequence[WithholdingSettingDef] = [
            s for s in self.settings_for(client_id)
            if s.applies_to(document.table_name, event)
        ]
        logger.info(
            "withholding_event_received",
            extra={
                "table_name": document.table_name,
                "document_id": str(document.id),
                "event": event.value if isinstance(event, ModelEvent) else event,
                "setting_count": len(matching),
            },
        )
        if not matching:
            return []
        return self._within_transaction(
            lambda: [self._run(document, setting) for setting in matching]
        )

    def _within_transaction(self, work):
        try:
            results = work()
            if self._auto_commit:
                self._session.commit()
            return results
        except Exception:
            if self._auto_commit:
                self._session.rollback()
            raise

    def _run(self, document: Document, setting: WithholdingSettingDef) -> EvaluationResult:
        strategy = self.build_strategy(setting)
        with LogContext.bind(
            correlation_id=str(uuid4()),
            document_id=str(document.id),
            setting_id=str(setting.id),
            actor_id=str(self._actor_id),
            regime=strategy.regime.value,
        ):
            logger.info(
                "withholding_evaluation_started",
                extra={"table_name": document.table_name, "setting_name": setting.name},
            )
            t0 = time.monotonic()
            try:
                result = strategy.evaluate(document)
            except Exception:
                duration_ms = round((time.monotonic() - t0) * 1000, 2)
                logger.error(
                    "withholding_evaluation_failed",
                    extra={"duration_ms": duration_ms},
                    exc_info=True,
                )
                raise

            duration_ms = round((time.monotonic() - t0) * 1000, 2)
            logger.info(
                "withholding_evaluation_completed",
                extra={
                    "is_applicable": result.is_applicable,
                    "withholding_amount": str(result.withholding_amount),
                    "record_count": len(result.record_ids),
                    "duration_ms": duration_ms,
                },
            )
            return result
