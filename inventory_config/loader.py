"""
Configuration loader (``inventory_config.loader``).

Responsibility
--------------
Reads one YAML file, applies caller overrides, validates, and parses the
result into the frozen dataclasses of ``inventory_config.schema``.  Runtime
callers go through ``inventory_config.get_active_config()``.

Invariants enforced
-------------------
* Every parse or validation error raises ``ValueError`` naming the key.
* Unknown sections and keys are rejected, so a typo never silently falls
  back to a default.
* ``compute_checksum`` produces a deterministic SHA-256 hash of the merged
  mapping, logged with every load.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Invalid values  -> ``ValueError``.
"""

from __future__ import annotations

import copy
import hashlib
import json
from dataclasses import fields
from pathlib import Path
from typing import Any, Mapping

import yaml

from inventory_config.schema import (
    IMPORT_UNKNOWN_UNIT_POLICIES,
    LOG_LEVELS,
    DatabaseConfig,
    KernelConfig,
    LedgerConfig,
    LoggingConfig,
)

_SECTIONS = {
    "database": DatabaseConfig,
    "ledger": LedgerConfig,
    "logging": LoggingConfig,
}


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the top level is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top level must be a mapping")
    return data


def merge_overrides(
    data: Mapping[str, Any],
    overrides: Mapping[str, Mapping[str, Any]] | None,
) -> dict[str, Any]:
    """Shallow per-section merge of ``overrides`` onto ``data``."""
    merged = copy.deepcopy(dict(data))
    for section, values in (overrides or {}).items():
        current = dict(merged.get(section) or {})
        current.update(values)
        merged[section] = current
    return merged


def compute_checksum(data: Mapping[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def _parse_section(name: str, data: Any) -> Any:
    cls = _SECTIONS[name]
    if data is None:
        return cls()
    if not isinstance(data, dict):
        raise ValueError(f"{name}: must be a mapping")
    allowed = {f.name for f in fields(cls)}
    unknown = sorted(set(data) - allowed)
    if unknown:
        raise ValueError(f"{name}: unknown keys {unknown}")
    return cls(**data)


def _require_int(key: str, value: Any, minimum: int) -> None:
    if isinstance(value, bool) or not isinstance(value, int) or value < minimum:
        raise ValueError(f"{key}: expected an integer >= {minimum}, got {value!r}")


def _require_bool(key: str, value: Any) -> None:
    if not isinstance(value, bool):
        raise ValueError(f"{key}: expected true/false, got {value!r}")


def validate(config: KernelConfig) -> None:
    """
    Raises:
        ValueError: first invalid value, with its dotted key.
    """
    database = config.database
    if not isinstance(database.url, str) or not database.url.strip():
        raise ValueError("database.url: must be a non-empty string")
    _require_bool("database.echo", database.echo)
    _require_int("database.pool_size", database.pool_size, 1)
    _require_int("database.max_overflow", database.max_overflow, 0)
    _require_int("database.pool_timeout", database.pool_timeout, 1)
    _require_int("database.pool_recycle", database.pool_recycle, -1)

    ledger = config.ledger
    _require_int("ledger.lock_timeout_ms", ledger.lock_timeout_ms, 1)
    _require_bool("ledger.allow_negative_revert", ledger.allow_negative_revert)
    if ledger.import_unknown_unit_policy not in IMPORT_UNKNOWN_UNIT_POLICIES:
        raise ValueError(
            "ledger.import_unknown_unit_policy: expected one of "
            f"{list(IMPORT_UNKNOWN_UNIT_POLICIES)}, got {ledger.import_unknown_unit_policy!r}"
        )

    level = config.logging.level
    if not isinstance(level, str) or level.upper() not in LOG_LEVELS:
        raise ValueError(f"logging.level: expected one of {list(LOG_LEVELS)}, got {level!r}")


def parse_config(data: Mapping[str, Any], source: str = "<mapping>") -> KernelConfig:
    """
    Parse and validate a configuration mapping.

    Raises:
        ValueError: unknown section or key, or an invalid value.
    """
    unknown = sorted(set(data) - set(_SECTIONS))
    if unknown:
        raise ValueError(f"unknown configuration sections {unknown}")

    config = KernelConfig(
        database=_parse_section("database", data.get("database")),
        ledger=_parse_section("ledger", data.get("ledger")),
        logging=_parse_section("logging", data.get("logging")),
        source=source,
        checksum=compute_checksum(data),
    )
    validate(config)
    return config
