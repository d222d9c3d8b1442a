"""
inventory_config -- single public entrypoint for runtime configuration.

Responsibility:
    ``get_active_config()`` is the only way scripts obtain configuration.
    It returns a frozen ``KernelConfig``.

Architecture position:
    Configuration sits above ``inventory_kernel``.  The kernel never
    imports from this package; callers pass plain values (database URL,
    lock timeout, flags) into kernel constructors.

Failure modes:
    - ``FileNotFoundError`` -- the given config file does not exist.
    - ``ValueError`` -- unknown keys or invalid values.

Audit relevance:
    Every successful load emits a ``config_loaded`` log entry with the
    source path and the SHA-256 checksum of the merged configuration.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Mapping

from inventory_config.loader import load_yaml_file, merge_overrides, parse_config
from inventory_config.schema import (
    DatabaseConfig,
    KernelConfig,
    LedgerConfig,
    LoggingConfig,
)

_logger = logging.getLogger("inventory_kernel.config")

DEFAULT_CONFIG_PATH = Path(__file__).parent / "defaults.yaml"


def get_active_config(
    config_path: Path | str | None = None,
    overrides: Mapping[str, Mapping[str, Any]] | None = None,
) -> KernelConfig:
    """
    Load, merge and validate the runtime configuration.

    Args:
        config_path: YAML file to read.  Defaults to the packaged
            ``defaults.yaml``.
        overrides: Per-section values applied on top of the file, e.g.
            ``{"database": {"url": "sqlite://"}}``.

    Raises:
        FileNotFoundError: If ``config_path`` does not exist.
        ValueError: If validation fails.
    """
    path = Path(config_path) if config_path is not None else DEFAULT_CONFIG_PATH
    data = merge_overrides(load_yaml_file(path), overrides)
    config = parse_config(data, source=str(path))

    _logger.info(
        "config_loaded",
        extra={
            "source": config.source,
            "checksum": config.checksum,
            "lock_timeout_ms": config.ledger.lock_timeout_ms,
            "allow_negative_revert": config.ledger.allow_negative_revert,
            "import_unknown_unit_policy": config.ledger.import_unknown_unit_policy,
        },
    )
    return config


__all__ = [
    "DEFAULT_CONFIG_PATH",
    "DatabaseConfig",
    "KernelConfig",
    "LedgerConfig",
    "LoggingConfig",
    "get_active_config",
]
