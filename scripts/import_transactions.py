#!/usr/bin/env python3
"""
Bulk-import transactions from a CSV or XLSX file.

One row per transaction line; rows sharing a reference_no form one
transaction.  Each transaction commits on its own, so a bad transaction is
reported and the rest of the file still imports.

Usage:
    python3 scripts/import_transactions.py --file movements.csv [options]

Columns:
    reference_no, date (YYYY-MM-DD), type (IN/OUT/TRANSFER/ADJUSTMENT),
    source_warehouse, target_warehouse (TRANSFER only), item_code, qty,
    unit, note, notes, delivery_order_no, partner_id

Exit status is 0 when every transaction imported, 2 when some failed and
1 on setup errors.
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from uuid import UUID

# Project root on sys.path
ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Import stock transactions from CSV/XLSX.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("--file", required=True, type=Path, help="CSV or XLSX file.")
    parser.add_argument("--config", type=Path, default=None, help="YAML config file.")
    parser.add_argument("--db-url", default=None, help="Override database.url.")
    parser.add_argument(
        "--sheet",
        default=None,
        help="XLSX sheet name (default: the active sheet).",
    )
    parser.add_argument("--delimiter", default=",", help="CSV delimiter (default: ',').")
    parser.add_argument(
        "--unknown-unit-policy",
        choices=("base_ratio", "reject"),
        default=None,
        help="Override ledger.import_unknown_unit_policy.",
    )
    parser.add_argument("--actor-id", type=UUID, default=None, help="Actor UUID for audit.")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)

    source_path = args.file.resolve()
    if not source_path.is_file():
        print(f"ERROR: File not found: {source_path}", file=sys.stderr)
        return 1

    from inventory_config import get_active_config
    from inventory_ingestion import CsvRowReader, XlsxRowReader, reader_for
    from inventory_kernel.db.engine import get_session_factory, init_engine_from_url
    from inventory_kernel.logging_config import configure_logging
    from inventory_kernel.services import InventoryService, TransactionImporter

    overrides: dict[str, dict] = {}
    if args.db_url:
        overrides["database"] = {"url": args.db_url}
    if args.unknown_unit_policy:
        overrides["ledger"] = {"import_unknown_unit_policy": args.unknown_unit_policy}
    try:
        config = get_active_config(args.config, overrides=overrides or None)
        reader = reader_for(source_path)
    except (FileNotFoundError, ValueError) as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1
    if isinstance(reader, XlsxRowReader) and args.sheet:
        reader = XlsxRowReader(sheet=args.sheet)
    elif isinstance(reader, CsvRowReader):
        reader = CsvRowReader(delimiter=args.delimiter)

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
    session_factory = get_session_factory()
    service = InventoryService(
        session_factory,
        lock_timeout_ms=config.ledger.lock_timeout_ms,
        allow_negative_revert=config.ledger.allow_negative_revert,
    )
    importer = TransactionImporter(
        service.coordinator,
        session_factory,
        actor_id=args.actor_id,
        unknown_unit_policy=config.ledger.import_unknown_unit_policy,
    )

    report = importer.import_rows(reader.read(source_path))

    print(f"Rows read:     {report.row_count}")
    print(f"Transactions:  {len(report.created)} created, {len(report.failures)} failed")
    for failure in report.failures:
        rows = ",".join(str(n) for n in failure.row_numbers)
        print(f"  FAILED {failure.reference_no or '(no reference)'} rows {rows}: "
              f"[{failure.error_code}] {failure.message}")
    return 0 if report.succeeded else 2


if __name__ == "__main__":
    sys.exit(main())
