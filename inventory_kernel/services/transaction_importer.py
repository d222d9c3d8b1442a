"""
TransactionImporter -- bulk entry of transactions from tabular rows.

Responsibility:
    Turns flat rows (one per line, e.g. from CSV or XLSX) into
    TransactionRequests grouped by reference number, and submits each
    through the lifecycle coordinator as its own unit of work.

Architecture position:
    Kernel > Services.  Row readers live in inventory_ingestion; this
    module only sees mappings.

Invariants enforced:
    - One transaction per reference number; the header comes from the
      group's first row.
    - Each transaction commits or fails on its own.  A failure is recorded
      in the ImportReport and the import continues.
    - Unknown units: with the ``base_ratio`` policy the line is entered at
      ratio 1 and ``import_unknown_unit_fallback`` is logged.  This leniency
      exists for bulk import only.  With ``reject`` the transaction fails
      with UnknownUnitError like interactive entry.

Failure modes:
    - Typed kernel errors are captured per transaction.  Anything else
      (a database outage, a programming error) propagates.

Expected columns (header names are case-insensitive):
    reference_no, date (YYYY-MM-DD), type, source_warehouse, item_code,
    qty, unit; optional target_warehouse, note, notes, delivery_order_no,
    partner_id.  Warehouses are given by id or by name.
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Generator, Iterable, Mapping
from uuid import UUID

from sqlalchemy.orm import Session

from inventory_kernel.domain.dtos import TransactionLineRequest, TransactionRequest
from inventory_kernel.domain.values import TransactionType
from inventory_kernel.exceptions import (
    InventoryKernelError,
    ItemNotFoundError,
    ValidationError,
    WarehouseNotFoundError,
)
from inventory_kernel.logging_config import LogContext, get_logger
from inventory_kernel.services.lifecycle_coordinator import TransactionLifecycleCoordinator
from inventory_kernel.services.master_data_service import MasterDataService

logger = get_logger("services.importer")

UNKNOWN_UNIT_BASE_RATIO = "base_ratio"
UNKNOWN_UNIT_REJECT = "reject"
UNKNOWN_UNIT_POLICIES = (UNKNOWN_UNIT_BASE_RATIO, UNKNOWN_UNIT_REJECT)

_COLUMN_ALIASES = {
    "reference": "reference_no",
    "ref": "reference_no",
    "transaction_date": "date",
    "transaction_type": "type",
    "warehouse": "source_warehouse",
    "source": "source_warehouse",
    "target": "target_warehouse",
    "item": "item_code",
    "code": "item_code",
    "quantity": "qty",
    "do_no": "delivery_order_no",
}


@dataclass(frozen=True)
class ImportFailure:
    """One transaction that could not be imported."""

    reference_no: str
    row_numbers: tuple[int, ...]
    error_code: str
    message: str


@dataclass
class ImportReport:
    """Outcome of one import run."""

    row_count: int = 0
    created: list[tuple[str, UUID]] = field(default_factory=list)
    failures: list[ImportFailure] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return not self.failures


def normalize_row(row: Mapping[str, Any]) -> dict[str, str]:
    """Lower-case, underscore and alias the keys; strip the values."""
    normalized: dict[str, str] = {}
    for key, value in row.items():
        if key is None:
            continue
        name = "_".join(str(key).strip().lower().split())
        name = _COLUMN_ALIASES.get(name, name)
        normalized[name] = "" if value is None else str(value).strip()
    return normalized


class TransactionImporter:
    """
    Bulk transaction import.

    Usage:
        importer = TransactionImporter(coordinator, get_session_factory())
        report = importer.import_rows(CsvRowReader().read(path))
    """

    def __init__(
        self,
        coordinator: TransactionLifecycleCoordinator,
        session_factory: Callable[[], Session],
        actor_id: UUID | None = None,
        unknown_unit_policy: str = UNKNOWN_UNIT_BASE_RATIO,
    ):
        if unknown_unit_policy not in UNKNOWN_UNIT_POLICIES:
            raise ValueError(f"Unknown import unit policy: {unknown_unit_policy}")
        self._coordinator = coordinator
        self._session_factory = session_factory
        self._actor_id = actor_id
        self._lenient_units = unknown_unit_policy == UNKNOWN_UNIT_BASE_RATIO

    def import_rows(self, rows: Iterable[Mapping[str, Any]]) -> ImportReport:
        report = ImportReport()
        groups: dict[str, list[tuple[int, dict[str, str]]]] = {}
        for row_number, row in enumerate(rows, start=1):
            report.row_count += 1
            normalized = normalize_row(row)
            groups.setdefault(normalized.get("reference_no", ""), []).append(
                (row_number, normalized)
            )

        lookup = _MasterDataLookup(self._session_factory)
        with LogContext.bind(operation="import", actor_id=self._actor_id):
            for reference_no, grouped in groups.items():
                self._import_one(reference_no, grouped, lookup, report)

        logger.info(
            "import_completed",
            extra={
                "row_count": report.row_count,
                "created_count": len(report.created),
                "failure_count": len(report.failures),
            },
        )
        return report

    def _import_one(
        self,
        reference_no: str,
        grouped: list[tuple[int, dict[str, str]]],
        lookup: _MasterDataLookup,
        report: ImportReport,
    ) -> None:
        row_numbers = tuple(number for number, _ in grouped)
        try:
            request = self._build_request(reference_no, [row for _, row in grouped], lookup)
            transaction_id = self._coordinator.create(
                request,
                actor_id=self._actor_id,
                lenient_units=self._lenient_units,
            )
        except InventoryKernelError as exc:
            logger.warning(
                "import_transaction_failed",
                extra={
                    "reference_no": reference_no,
                    "rows": list(row_numbers),
                    "error_code": exc.code,
                },
            )
            report.failures.append(
                ImportFailure(
                    reference_no=reference_no,
                    row_numbers=row_numbers,
                    error_code=exc.code,
                    message=str(exc),
                )
            )
            return
        report.created.append((reference_no, transaction_id))

    def _build_request(
        self,
        reference_no: str,
        rows: list[dict[str, str]],
        lookup: _MasterDataLookup,
    ) -> TransactionRequest:
        if not reference_no:
            raise ValidationError("reference_no", "reference number is required")

        header = rows[0]
        try:
            transaction_type = TransactionType(header.get("type", "").upper())
        except ValueError:
            raise ValidationError("type", f"unknown transaction type {header.get('type')!r}")

        try:
            transaction_date = date.fromisoformat(header.get("date", ""))
        except ValueError:
            raise ValidationError("date", f"expected YYYY-MM-DD, got {header.get('date')!r}")

        source = header.get("source_warehouse", "")
        target = header.get("target_warehouse", "")
        partner = header.get("partner_id", "")
        try:
            partner_id = UUID(partner) if partner else None
        except ValueError:
            raise ValidationError("partner_id", f"not a UUID: {partner!r}")

        lines = []
        for index, row in enumerate(rows):
            try:
                qty = Decimal(row.get("qty", ""))
            except InvalidOperation:
                raise ValidationError(f"lines[{index}].qty", f"not a number: {row.get('qty')!r}")
            lines.append(
                TransactionLineRequest(
                    item_id=lookup.item_id(row.get("item_code", "")),
                    qty=qty,
                    unit=row.get("unit", ""),
                    note=row.get("note") or None,
                )
            )

        return TransactionRequest(
            reference_no=reference_no,
            transaction_type=transaction_type,
            transaction_date=transaction_date,
            source_warehouse_id=lookup.warehouse_id(source) if source else None,
            target_warehouse_id=lookup.warehouse_id(target) if target else None,
            lines=tuple(lines),
            partner_id=partner_id,
            delivery_order_no=header.get("delivery_order_no") or None,
            notes=header.get("notes") or None,
        )


class _MasterDataLookup:
    """
    Cached code/name -> id resolution for one import run.

    Each cache miss uses its own short read session, so no session stays
    open while the coordinator commits.
    """

    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory
        self._items: dict[str, UUID] = {}
        self._warehouses: dict[str, UUID] = {}

    @contextmanager
    def _master_data(self) -> Generator[MasterDataService, None, None]:
        session = self._session_factory()
        try:
            yield MasterDataService(session)
        finally:
            session.rollback()
            session.close()

    def item_id(self, code: str) -> UUID:
        if code not in self._items:
            with self._master_data() as master_data:
                item = master_data.find_item_by_code(code)
            if item is None:
                raise ItemNotFoundError(code)
            self._items[code] = item.id
        return self._items[code]

    def warehouse_id(self, reference: str) -> UUID:
        if reference not in self._warehouses:
            with self._master_data() as master_data:
                try:
                    warehouse_id = UUID(reference)
                except ValueError:
                    warehouse = master_data.find_warehouse_by_name(reference)
                    warehouse_id = warehouse.id if warehouse is not None else None
                else:
                    if not master_data.warehouse_exists(warehouse_id):
                        warehouse_id = None
            if warehouse_id is None:
                raise WarehouseNotFoundError(reference)
            self._warehouses[reference] = warehouse_id
        return self._warehouses[reference]
