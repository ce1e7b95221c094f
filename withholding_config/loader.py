"""
Configuration Loader (``withholding_config.loader``).

Responsibility
--------------
Loads withholding configuration YAML files and parses them into typed
``withholding_config.schema`` dataclass instances.

Invariants enforced
-------------------
* Every parsed object is a frozen dataclass from ``schema.py``.
* Unknown event codes are rejected at parse time.
* ``compute_checksum`` produces a deterministic SHA-256 hash for
  configuration identity and change detection.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
* Malformed UUIDs or unknown event codes  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any
from uuid import UUID

import yaml

from withholding_config.schema import (
    ModelEvent,
    WithholdingConfigurationSet,
    WithholdingSettingDef,
)
from withholding_kernel.logging_config import get_logger

logger = get_logger("config.loader")

_VALID_EVENTS = {event.value for event in ModelEvent}


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_event(value: Any) -> str | None:
    """Validate an event code; empty values mean "no trigger configured"."""
    if value is None or value == "":
        return None
    code = str(value).strip()
    if code not in _VALID_EVENTS:
        raise ValueError(
            f"event_model_validator must be one of {sorted(_VALID_EVENTS)}, got {value!r}"
        )
    return code


def parse_setting(data: dict[str, Any]) -> WithholdingSettingDef:
    """
    Parse a ``WithholdingSettingDef`` from a dict.

    Preconditions:
        - ``data`` contains ``id``, ``name``, ``regime``, ``definition_id``
          and ``withholding_type_id``.
    Raises:
        KeyError: if required keys are missing.
        ValueError: if an id is not a UUID or the event code is unknown.
    """
    return WithholdingSettingDef(
        id=UUID(str(data["id"])),
        name=data["name"],
        regime=str(data["regime"]),
        definition_id=UUID(str(data["definition_id"])),
        withholding_type_id=UUID(str(data["withholding_type_id"])),
        event_model_validator=parse_event(data.get("event_model_validator")),
        tables=tuple(data.get("tables", ())),
        is_active=bool(data.get("is_active", True)),
    )


def parse_configuration(data: dict[str, Any]) -> WithholdingConfigurationSet:
    """Parse a full configuration set from a dict."""
    settings = tuple(parse_setting(s) for s in data.get("settings", []))

    ids = [s.id for s in settings]
    if len(ids) != len(set(ids)):
        duplicates = sorted({str(i) for i in ids if ids.count(i) > 1})
        raise ValueError(f"settings contains duplicate ids: {duplicates}")

    return WithholdingConfigurationSet(
        config_id=data["config_id"],
        version=int(data.get("version", 1)),
        client_id=str(data.get("client_id", "*")),
        settings=settings,
        checksum=compute_checksum(data),
    )


def load_configuration(path: Path) -> WithholdingConfigurationSet:
    """Load and parse one configuration file."""
    config_set = parse_configuration(load_yaml_file(path))
    logger.info(
        "withholding_config_loaded",
        extra={
            "path": str(path),
            "config_id": config_set.config_id,
            "version": config_set.version,
            "setting_count": len(config_set.settings),
            "checksum": config_set.checksum,
        },
    )
    return config_set


def compute_checksum(data: dict[str, Any]) -> str:
    """
    Compute SHA-256 checksum of canonical JSON serialization.

    Postconditions:
        - Identical ``data`` always produces identical checksums.
    """
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
