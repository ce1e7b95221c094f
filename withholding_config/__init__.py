"""
withholding_config -- single public entrypoint for withholding settings.

Responsibility:
    Provides ``get_active_config()`` / ``get_active_settings()``: the only
    way evaluators obtain withholding settings at runtime.  YAML loading is
    internal to this package.

Failure modes:
    - ``FileNotFoundError`` -- no configuration file matches the client.
    - ``ValueError`` / ``KeyError`` -- malformed configuration.

Audit relevance:
    Every successful ``get_active_config()`` call emits a
    ``WITHHOLDING_CONFIG_TRACE`` log entry with the config id, version and
    checksum, tying each generated withholding back to the configuration
    that governed it.
"""

from __future__ import annotations

from pathlib import Path

from withholding_config.loader import load_configuration
from withholding_config.schema import (
    ModelEvent,
    Regime,
    WithholdingConfigurationSet,
    WithholdingSettingDef,
)
from withholding_kernel.logging_config import get_logger

_logger = get_logger("config")

_DEFAULT_CONFIG_DIR = Path(__file__).parent / "sets"

__all__ = [
    "ModelEvent",
    "Regime",
    "WithholdingConfigurationSet",
    "WithholdingSettingDef",
    "get_active_config",
    "get_active_settings",
]


def get_active_config(
    client_id: str = "*",
    config_dir: Path | None = None,
) -> WithholdingConfigurationSet:
    """
    Return the configuration set for a client.

    A set scoped to the exact client wins over a wildcard (``"*"``) set;
    among equals the highest version wins.

    Raises:
        FileNotFoundError: If the directory is missing or no set matches.
    """
    sets_dir = config_dir or _DEFAULT_CONFIG_DIR
    if not sets_dir.is_dir():
        raise FileNotFoundError(f"Configuration sets directory not found: {sets_dir}")

    exact: list[WithholdingConfigurationSet] = []
    wildcard: list[WithholdingConfigurationSet] = []
    for path in sorted(sets_dir.glob("*.yaml")):
        config_set = load_configuration(path)
        if config_set.client_id == client_id:
            exact.append(config_set)
        elif config_set.client_id == "*":
            wildcard.append(config_set)

    candidates = exact or wildcard
    if not candidates:
        raise FileNotFoundError(
            f"No withholding configuration found for client_id='{client_id}' in {sets_dir}"
        )

    config_set = max(candidates, key=lambda c: c.version)
    _logger.info(
        "WITHHOLDING_CONFIG_TRACE",
        extra={
            "trace_type": "WITHHOLDING_CONFIG_TRACE",
            "config_id": config_set.config_id,
            "config_version": config_set.version,
            "checksum": config_set.checksum,
            "client_id": client_id,
            "setting_count": len(config_set.settings),
        },
    )
    return config_set


def get_active_settings(
    client_id: str = "*",
    config_dir: Path | None = None,
) -> tuple[WithholdingSettingDef, ...]:
    """Active settings of the client's configuration set."""
    return get_active_config(client_id, config_dir).active_settings
