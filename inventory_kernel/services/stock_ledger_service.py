"""
StockLedgerService -- locked read-modify-write on stock rows.

Responsibility:
    The ONLY code path that changes ``stock.quantity``.  Applies one signed
    base-unit delta to one (item, warehouse) row while holding that row
    exclusively, and rejects decrements that would drive it negative.

Architecture position:
    Kernel > Services -- imperative shell.  Called by
    TransactionEffectEngine; never called directly by outer layers.

Invariants enforced:
    - First touch is insert-or-ignore (``INSERT ... ON CONFLICT DO
      NOTHING``), so two units of work creating the same row concurrently
      both succeed and then serialize on the row lock.
    - Every sufficiency decision is made on the row read with
      ``SELECT ... FOR UPDATE`` (populate_existing, so a stale identity-map
      copy is never trusted).
    - A rejected delta changes nothing.
    - Rows are never deleted, even at zero.

Failure modes:
    - InsufficientStockError when ``expect_sufficient`` and the decrement
      exceeds the locked quantity.
    - LockTimeoutError when the row lock (or, on SQLite, the database write
      lock) is not granted within the bound.

Audit relevance:
    Each applied delta is logged as ``stock_delta_applied`` with the
    before/after quantities; rejections as ``insufficient_stock``.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from inventory_kernel.db.engine import DEFAULT_LOCK_TIMEOUT_MS
from inventory_kernel.db.types import ZERO, round_quantity, to_decimal
from inventory_kernel.domain.clock import Clock, SystemClock
from inventory_kernel.exceptions import InsufficientStockError
from inventory_kernel.logging_config import get_logger
from inventory_kernel.models.stock import StockEntry
from inventory_kernel.services.base import BaseService

logger = get_logger("services.stock_ledger")


class StockLedgerService(BaseService[StockEntry]):
    """
    Applies deltas to the per-(item, warehouse) stock ledger.

    Contract:
        Must run inside a unit of work; the row lock is held until that
        unit of work commits or rolls back.

    Non-goals:
        - Does NOT decide the sign or the sufficiency requirement of a
          delta (TransactionEffectEngine does).
        - Does NOT order multiple deltas; callers present them in
          (warehouse_id, item_id) order.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        lock_timeout_ms: int = DEFAULT_LOCK_TIMEOUT_MS,
    ):
        super().__init__(session, lock_timeout_ms)
        self._clock = clock or SystemClock()

    def apply_delta(
        self,
        warehouse_id: UUID,
        item_id: UUID,
        delta: Decimal,
        expect_sufficient: bool,
    ) -> Decimal:
        """
        Add ``delta`` to the stock row of (item_id, warehouse_id).

        Preconditions:
            ``delta`` is in base units.  It is scaled to the persisted
            precision here.

        Postconditions:
            On success the row exists, holds ``previous + delta`` and stays
            locked until the unit of work ends.

        Returns:
            The new quantity.

        Raises:
            InsufficientStockError: ``delta < 0``, ``expect_sufficient`` is
                true, and the locked quantity is smaller than ``-delta``.
            LockTimeoutError: The row could not be locked in time.
        """
        delta = round_quantity(to_decimal(delta))
        resource = f"stock(item={item_id}, warehouse={warehouse_id})"

        with self._lock_guard(resource):
            self._ensure_row(item_id, warehouse_id)
            entry = self._lock_row(item_id, warehouse_id)

        available = entry.quantity
        new_quantity = available + delta

        # INVARIANT: sufficiency is judged on the locked row only
        if delta < ZERO and expect_sufficient and new_quantity < ZERO:
            logger.info(
                "insufficient_stock",
                extra={
                    "item_id": str(item_id),
                    "warehouse_id": str(warehouse_id),
                    "available": available,
                    "requested": -delta,
                },
            )
            raise InsufficientStockError(
                item_id=str(item_id),
                warehouse_id=str(warehouse_id),
                available=available,
                requested=-delta,
            )

        entry.quantity = new_quantity
        entry.last_updated = self._now()
        with self._lock_guard(resource):
            self.session.flush()

        logger.debug(
            "stock_delta_applied",
            extra={
                "item_id": str(item_id),
                "warehouse_id": str(warehouse_id),
                "delta": delta,
                "before": available,
                "after": new_quantity,
            },
        )
        return new_quantity

    def lock(self, warehouse_id: UUID, item_id: UUID) -> Decimal:
        """
        Create (if absent) and lock a stock row without changing it.

        Used to take every row a unit of work will touch up front, in
        (warehouse_id, item_id) order.

        Returns:
            The locked quantity.
        """
        with self._lock_guard(f"stock(item={item_id}, warehouse={warehouse_id})"):
            self._ensure_row(item_id, warehouse_id)
            entry = self._lock_row(item_id, warehouse_id)
        return entry.quantity

    def get_qty(self, item_id: UUID, warehouse_id: UUID) -> Decimal:
        """
        Non-locking read of the current quantity (0 when no row exists).

        May be stale under concurrent writers.  Never use it to decide
        sufficiency.
        """
        quantity = self.session.execute(
            select(StockEntry.quantity).where(
                StockEntry.item_id == item_id,
                StockEntry.warehouse_id == warehouse_id,
            )
        ).scalar_one_or_none()
        return quantity if quantity is not None else round_quantity(ZERO)

    def _now(self) -> datetime:
        return self._clock.now()

    def _lock_row(self, item_id: UUID, warehouse_id: UUID) -> StockEntry:
        return self.session.execute(
            select(StockEntry)
            .where(
                StockEntry.item_id == item_id,
                StockEntry.warehouse_id == warehouse_id,
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one()

    def _ensure_row(self, item_id: UUID, warehouse_id: UUID) -> None:
        """Create the row at zero unless it already exists."""
        dialect = self.session.get_bind().dialect.name
        values = {
            "id": uuid4(),
            "item_id": item_id,
            "warehouse_id": warehouse_id,
            "quantity": ZERO,
            "last_updated": self._now(),
        }

        if dialect in ("postgresql", "sqlite"):
            if dialect == "postgresql":
                from sqlalchemy.dialects.postgresql import insert
            else:
                from sqlalchemy.dialects.sqlite import insert

            stmt = (
                insert(StockEntry)
                .values(**values)
                .on_conflict_do_nothing(index_elements=["item_id", "warehouse_id"])
            )
            self.session.execute(stmt)
            return

        # Other backends: savepoint insert, tolerate a concurrent creator
        exists = self.session.execute(
            select(StockEntry.id).where(
                StockEntry.item_id == item_id,
                StockEntry.warehouse_id == warehouse_id,
            )
        ).scalar_one_or_none()
        if exists is not None:
            return
        savepoint = self.session.begin_nested()
        try:
            self.session.add(StockEntry(**values))
            self.session.flush()
            savepoint.commit()
        except IntegrityError:
            logger.debug(
                "stock_row_race_retry",
                extra={"item_id": str(item_id), "warehouse_id": str(warehouse_id)},
            )
            savepoint.rollback()
