"""
Withholding configuration schema.

Frozen dataclasses for the human-authored withholding settings.  YAML
fragments are parsed into these types by ``withholding_config.loader``.

A setting binds one evaluation regime to a withholding definition and a
withholding type, and names the host model event that triggers it.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from uuid import UUID


class Regime(str, Enum):
    """Evaluation regimes with a registered strategy."""

    MUNICIPAL = "municipal"
    POS_VAT = "pos_vat"


class ModelEvent(str, Enum):
    """Host model events a setting can be bound to."""

    TABLE_BEFORE_NEW = "TBN"
    TABLE_AFTER_NEW = "TAN"
    TABLE_BEFORE_CHANGE = "TBC"
    TABLE_AFTER_CHANGE = "TAC"
    DOCUMENT_BEFORE_COMPLETE = "DBCO"
    DOCUMENT_AFTER_COMPLETE = "DACO"


@dataclass(frozen=True)
class WithholdingSettingDef:
    """
    One withholding setting.

    ``regime`` is kept as the raw configured string so that an unknown value
    surfaces as ``UnsupportedRegimeError`` when a strategy is built for it.
    ``event_model_validator`` may be None: the POS VAT regime treats a
    setting without a trigger as not applicable.
    """

    id: UUID
    name: str
    regime: str
    definition_id: UUID
    withholding_type_id: UUID
    event_model_validator: str | None = None
    tables: tuple[str, ...] = ()
    is_active: bool = True

    def applies_to(self, table_name: str, event: ModelEvent | str) -> bool:
        """True when this setting is active and bound to the event on the table."""
        event_code = event.value if isinstance(event, ModelEvent) else event
        if not self.is_active or self.event_model_validator != event_code:
            return False
        return not self.tables or table_name in self.tables


@dataclass(frozen=True)
class WithholdingConfigurationSet:
    """A versioned group of settings for one client scope."""

    config_id: str
    version: int
    client_id: str
    settings: tuple[WithholdingSettingDef, ...]
    checksum: str = ""

    @property
    def active_settings(self) -> tuple[WithholdingSettingDef, ...]:
        return tuple(s for s in self.settings if s.is_active)
