"""
TransactionRecordStore -- persistence of transaction headers and lines.

Responsibility:
    Inserts, replaces and removes committed transactions, and fetches them
    by id (optionally locked) or by filter.  Knows nothing about stock.

Architecture position:
    Kernel > Services -- imperative shell.  Called by
    TransactionLifecycleCoordinator inside its unit of work.

Invariants enforced:
    - Lines are written with their unit, ratio snapshot and
      ``base_qty = round_quantity(qty * ratio)``.
    - replace() deletes the old lines (flushed first) and inserts new
      ones.  Lines are never updated in place.
    - remove() deletes lines and header in the same flush through the
      delete-orphan cascade.
    - reference_no stays unique: checked up front, and a unique violation
      raised by the database is translated as well.

Failure modes:
    - TransactionNotFoundError from get_by_id().
    - DuplicateReferenceError on a reference number already in use.
    - LockTimeoutError when ``for_update`` cannot lock the header in time.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Iterator, Sequence
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from inventory_kernel.domain.dtos import TransactionFilter, TransactionRequest
from inventory_kernel.domain.effects import line_base_qty
from inventory_kernel.exceptions import DuplicateReferenceError, TransactionNotFoundError
from inventory_kernel.logging_config import get_logger
from inventory_kernel.models.transaction import InventoryTransaction, TransactionLine
from inventory_kernel.selectors.transaction_selector import transaction_query
from inventory_kernel.services.base import BaseService

logger = get_logger("services.transaction_store")


@dataclass(frozen=True)
class LineRecord:
    """A line ready to persist: the entered quantity plus its resolved ratio."""

    item_id: UUID
    qty: Decimal
    unit: str
    ratio: Decimal
    note: str | None = None


class TransactionRecordStore(BaseService[InventoryTransaction]):
    """
    Header/line persistence for inventory transactions.

    Non-goals:
        - Does NOT validate requests or resolve units (coordinator).
        - Does NOT touch stock (effect engine).
    """

    def insert(
        self,
        header: TransactionRequest,
        lines: Sequence[LineRecord],
        created_at: datetime | None = None,
        actor_id: UUID | None = None,
    ) -> InventoryTransaction:
        """
        Persist a new transaction with its lines.

        Returns:
            The flushed InventoryTransaction (id assigned, lines loaded).

        Raises:
            DuplicateReferenceError: reference_no is already in use.
        """
        reference_no = header.reference_no.strip()
        self._ensure_reference_available(reference_no)

        transaction = InventoryTransaction(
            reference_no=reference_no,
            transaction_type=header.transaction_type.value,
            transaction_date=header.transaction_date,
            source_warehouse_id=header.source_warehouse_id,
            target_warehouse_id=header.target_warehouse_id,
            partner_id=header.partner_id,
            delivery_order_no=header.delivery_order_no,
            notes=header.notes,
            created_by_id=actor_id,
            updated_by_id=actor_id,
        )
        if created_at is not None:
            transaction.created_at = created_at
            transaction.updated_at = created_at

        transaction.lines = self._build_lines(lines)
        self.session.add(transaction)
        self._flush(reference_no)

        logger.debug(
            "transaction_record_inserted",
            extra={
                "transaction_id": str(transaction.id),
                "reference_no": reference_no,
                "line_count": len(lines),
            },
        )
        return transaction

    def replace(
        self,
        transaction: InventoryTransaction,
        header: TransactionRequest,
        lines: Sequence[LineRecord],
        updated_at: datetime | None = None,
        actor_id: UUID | None = None,
    ) -> InventoryTransaction:
        """
        Overwrite header fields and swap the line set.

        The transaction type is NOT written; the coordinator has already
        rejected any attempt to change it.
        """
        reference_no = header.reference_no.strip()
        if reference_no != transaction.reference_no:
            self._ensure_reference_available(reference_no, exclude_id=transaction.id)

        old_line_count = len(transaction.lines)
        transaction.lines.clear()
        # Old lines are deleted before the new set is inserted
        self._flush(reference_no)

        transaction.reference_no = reference_no
        transaction.transaction_date = header.transaction_date
        transaction.source_warehouse_id = header.source_warehouse_id
        transaction.target_warehouse_id = header.target_warehouse_id
        transaction.partner_id = header.partner_id
        transaction.delivery_order_no = header.delivery_order_no
        transaction.notes = header.notes
        transaction.updated_by_id = actor_id
        if updated_at is not None:
            transaction.updated_at = updated_at
        transaction.lines.extend(self._build_lines(lines))
        self._flush(reference_no)

        logger.debug(
            "transaction_record_replaced",
            extra={
                "transaction_id": str(transaction.id),
                "reference_no": reference_no,
                "old_line_count": old_line_count,
                "line_count": len(lines),
            },
        )
        return transaction

    def remove(self, transaction: InventoryTransaction) -> None:
        """Delete the header and, through the cascade, all of its lines."""
        transaction_id = transaction.id
        self.session.delete(transaction)
        self.session.flush()
        logger.debug("transaction_record_removed", extra={"transaction_id": str(transaction_id)})

    def get_by_id(self, transaction_id: UUID, for_update: bool = False) -> InventoryTransaction:
        """
        Fetch a transaction with its lines.

        Args:
            for_update: Lock the header row (SELECT ... FOR UPDATE) so a
                concurrent update/delete of the same id waits for this unit
                of work.

        Raises:
            TransactionNotFoundError: No such transaction.
            LockTimeoutError: The header could not be locked in time.
        """
        stmt = select(InventoryTransaction).where(InventoryTransaction.id == transaction_id)
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)

        with self._lock_guard(f"transaction({transaction_id})"):
            transaction = self.session.execute(stmt).scalar_one_or_none()

        if transaction is None:
            raise TransactionNotFoundError(str(transaction_id))
        return transaction

    def list_by_filter(
        self,
        transaction_filter: TransactionFilter | None = None,
    ) -> Iterator[InventoryTransaction]:
        """Transactions matching the filter, newest first."""
        yield from self.session.execute(transaction_query(transaction_filter)).scalars()

    @staticmethod
    def _build_lines(lines: Sequence[LineRecord]) -> list[TransactionLine]:
        return [
            TransactionLine(
                line_no=line_no,
                item_id=line.item_id,
                qty=line.qty,
                unit=line.unit,
                ratio=line.ratio,
                base_qty=line_base_qty(line.qty, line.ratio),
                note=line.note,
            )
            for line_no, line in enumerate(lines, start=1)
        ]

    def _ensure_reference_available(self, reference_no: str, exclude_id: UUID | None = None) -> None:
        stmt = select(InventoryTransaction.id).where(
            InventoryTransaction.reference_no == reference_no
        )
        if exclude_id is not None:
            stmt = stmt.where(InventoryTransaction.id != exclude_id)
        if self.session.execute(stmt).first() is not None:
            raise DuplicateReferenceError(reference_no)

    def _flush(self, reference_no: str) -> None:
        try:
            with self._lock_guard("transactions"):
                self.session.flush()
        except IntegrityError as exc:
            if "reference_no" in str(exc.orig):
                raise DuplicateReferenceError(reference_no) from exc
            raise
