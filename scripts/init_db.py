#!/usr/bin/env python3
"""
Create the inventory tables in the configured database.

Usage:
    python3 scripts/init_db.py [--config path.yaml] [--db-url URL] [--drop]

Tables that already exist are left alone unless --drop is given.
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

# Project root on sys.path
ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Create inventory tables.")
    parser.add_argument("--config", type=Path, default=None, help="YAML config file.")
    parser.add_argument("--db-url", default=None, help="Override database.url.")
    parser.add_argument(
        "--drop",
        action="store_true",
        help="Drop all inventory tables first. Destroys data.",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)

    from inventory_config import get_active_config
    from inventory_kernel.db.engine import (
        create_tables,
        drop_tables,
        init_engine_from_url,
        is_postgres,
    )
    from inventory_kernel.logging_config import configure_logging

    overrides = {"database": {"url": args.db_url}} if args.db_url else None
    try:
        config = get_active_config(args.config, overrides=overrides)
    except (FileNotFoundError, ValueError) as e:
        print(f"ERROR: Failed to load config: {e}", file=sys.stderr)
        return 1

    configure_logging(level=config.logging.level)
    engine = init_engine_from_url(
        config.database.url,
        echo=config.database.echo,
        pool_size=config.database.pool_size,
        max_overflow=config.database.max_overflow,
        pool_timeout=config.database.pool_timeout,
        pool_recycle=config.database.pool_recycle,
        lock_timeout_ms=config.ledger.lock_timeout_ms,
    )
    if args.drop:
        drop_tables(engine)
        print("Dropped existing tables.")
    create_tables(engine)
    print(f"Tables ready: {engine.url.render_as_string(hide_password=True)}")
    if not is_postgres():
        print("Note: SQLite serializes writers; use PostgreSQL for concurrent use.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
