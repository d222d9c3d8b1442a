#!/usr/bin/env python3
"""
Conservation audit: compare every stock row with the replayed effects of
all committed transactions.

Usage:
    python3 scripts/reconcile_stock.py [--config path.yaml] [--db-url URL]

Exit status is 0 when stock matches, 3 when discrepancies were found.
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

# Project root on sys.path
ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Verify stock against transactions.")
    parser.add_argument("--config", type=Path, default=None, help="YAML config file.")
    parser.add_argument("--db-url", default=None, help="Override database.url.")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)

    from inventory_config import get_active_config
    from inventory_kernel.db.engine import get_session_factory, init_engine_from_url
    from inventory_kernel.logging_config import configure_logging
    from inventory_kernel.services import InventoryService

    overrides = {"database": {"url": args.db_url}} if args.db_url else None
    try:
        config = get_active_config(args.config, overrides=overrides)
    except (FileNotFoundError, ValueError) as e:
        print(f"ERROR: Failed to load config: {e}", file=sys.stderr)
        return 1

    configure_logging(level=config.logging.level)
    init_engine_from_url(
        config.database.url,
        echo=config.database.echo,
        pool_size=config.database.pool_size,
        max_overflow=config.database.max_overflow,
        pool_timeout=config.database.pool_timeout,
        pool_recycle=config.database.pool_recycle,
        lock_timeout_ms=config.ledger.lock_timeout_ms,
    )
    service = InventoryService(
        get_session_factory(),
        lock_timeout_ms=config.ledger.lock_timeout_ms,
    )

    discrepancies = service.verify_conservation()
    if not discrepancies:
        print("OK: every stock row matches its transactions.")
        return 0

    print(f"DRIFT: {len(discrepancies)} stock row(s) disagree with transactions")
    print(f"  {'warehouse_id':36}  {'item_id':36}  {'expected':>14}  {'actual':>14}  {'difference':>14}")
    for d in discrepancies:
        print(
            f"  {str(d.warehouse_id):36}  {str(d.item_id):36}  "
            f"{d.expected:>14}  {d.actual:>14}  {d.difference:>14}"
        )
    return 3


if __name__ == "__main__":
    sys.exit(main())
