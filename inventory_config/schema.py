"""
Runtime configuration schema.

Frozen dataclasses parsed from YAML by ``inventory_config.loader``.  The
kernel never imports this package; scripts read a ``KernelConfig`` and pass
plain values (URL, lock timeout, flags) into kernel constructors.
"""

from __future__ import annotations

from dataclasses import dataclass, field

IMPORT_UNKNOWN_UNIT_POLICIES = ("base_ratio", "reject")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass(frozen=True)
class DatabaseConfig:
    """Engine settings, passed to ``init_engine_from_url``."""

    url: str = "sqlite:///inventory.db"
    echo: bool = False
    pool_size: int = 20
    max_overflow: int = 10
    pool_timeout: int = 30
    pool_recycle: int = 1800


@dataclass(frozen=True)
class LedgerConfig:
    """Stock ledger behaviour."""

    lock_timeout_ms: int = 5000
    # Operator override: lets a revert drive stock negative.  Off by default.
    allow_negative_revert: bool = False
    import_unknown_unit_policy: str = "base_ratio"


@dataclass(frozen=True)
class LoggingConfig:
    level: str = "INFO"


@dataclass(frozen=True)
class KernelConfig:
    """The complete runtime configuration."""

    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    ledger: LedgerConfig = field(default_factory=LedgerConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    source: str = "<defaults>"
    checksum: str = ""
