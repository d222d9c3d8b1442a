"""
InventoryService -- the external interface of the stock core.

Responsibility:
    What UI handlers, report builders and scripts call.  Writes go through
    TransactionLifecycleCoordinator; reads go through the selectors on a
    short-lived, non-locking session.

Architecture position:
    Kernel > Services -- outermost kernel facade.  Outer layers wire it
    from configuration (see scripts/).

    submit_transaction   -> coordinator.create
    edit_transaction     -> coordinator.update
    remove_transaction   -> coordinator.delete
    get_transaction      -> TransactionSelector.get
    find_transaction     -> TransactionSelector.find_by_reference
    list_transactions    -> TransactionSelector.list_transactions
    get_stock_qty        -> StockSelector.get_qty
    list_stocks          -> StockSelector.list_stocks
    get_item_total       -> StockSelector.total_for_item

Invariants enforced:
    - Reads never lock and never write; read sessions are always rolled
      back and closed.
"""

from contextlib import contextmanager
from datetime import date
from decimal import Decimal
from typing import Callable, Generator
from uuid import UUID

from sqlalchemy.orm import Session

from inventory_kernel.db.engine import DEFAULT_LOCK_TIMEOUT_MS
from inventory_kernel.domain.clock import Clock
from inventory_kernel.domain.dtos import (
    ConservationDiscrepancy,
    StockInfo,
    StockMovement,
    TransactionFilter,
    TransactionInfo,
    TransactionRequest,
)
from inventory_kernel.selectors.reconciliation_selector import ReconciliationSelector
from inventory_kernel.selectors.stock_selector import StockSelector
from inventory_kernel.selectors.transaction_selector import TransactionSelector
from inventory_kernel.services.lifecycle_coordinator import TransactionLifecycleCoordinator


class InventoryService:
    """
    Facade over the transaction lifecycle and the stock/transaction reads.

    Usage:
        service = InventoryService(get_session_factory())
        tx_id = service.submit_transaction(request, actor_id=user_id)
        qty = service.get_stock_qty(item_id, warehouse_id)
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        clock: Clock | None = None,
        lock_timeout_ms: int = DEFAULT_LOCK_TIMEOUT_MS,
        allow_negative_revert: bool = False,
    ):
        self._session_factory = session_factory
        self._coordinator = TransactionLifecycleCoordinator(
            session_factory,
            clock=clock,
            lock_timeout_ms=lock_timeout_ms,
            allow_negative_revert=allow_negative_revert,
        )

    @property
    def coordinator(self) -> TransactionLifecycleCoordinator:
        return self._coordinator

    @contextmanager
    def _read(self) -> Generator[Session, None, None]:
        session = self._session_factory()
        try:
            yield session
        finally:
            session.rollback()
            session.close()

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    def submit_transaction(
        self,
        request: TransactionRequest,
        actor_id: UUID | None = None,
    ) -> UUID:
        return self._coordinator.create(request, actor_id=actor_id)

    def edit_transaction(
        self,
        transaction_id: UUID,
        request: TransactionRequest,
        actor_id: UUID | None = None,
    ) -> None:
        self._coordinator.update(transaction_id, request, actor_id=actor_id)

    def remove_transaction(self, transaction_id: UUID, actor_id: UUID | None = None) -> None:
        self._coordinator.delete(transaction_id, actor_id=actor_id)

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def get_transaction(self, transaction_id: UUID) -> TransactionInfo:
        with self._read() as session:
            return TransactionSelector(session).get(transaction_id)

    def find_transaction(self, reference_no: str) -> TransactionInfo | None:
        with self._read() as session:
            return TransactionSelector(session).find_by_reference(reference_no)

    def list_transactions(
        self,
        transaction_filter: TransactionFilter | None = None,
    ) -> list[TransactionInfo]:
        """Matching transactions, newest first, lines labelled with item code/name."""
        with self._read() as session:
            return list(TransactionSelector(session).list_transactions(transaction_filter))

    def get_stock_qty(self, item_id: UUID, warehouse_id: UUID) -> Decimal:
        with self._read() as session:
            return StockSelector(session).get_qty(item_id, warehouse_id)

    def list_stocks(self, warehouse_id: UUID | None = None) -> list[StockInfo]:
        with self._read() as session:
            return StockSelector(session).list_stocks(warehouse_id=warehouse_id)

    def get_item_total(self, item_id: UUID) -> Decimal:
        """Quantity of an item over all warehouses, in base units."""
        with self._read() as session:
            return StockSelector(session).total_for_item(item_id)

    def list_low_stock(self, warehouse_id: UUID | None = None) -> list[StockInfo]:
        with self._read() as session:
            return StockSelector(session).list_low_stock(warehouse_id=warehouse_id)

    def stock_movements(
        self,
        item_id: UUID,
        warehouse_id: UUID,
        date_from: date | None = None,
        date_to: date | None = None,
    ) -> list[StockMovement]:
        with self._read() as session:
            return TransactionSelector(session).stock_movements(
                item_id, warehouse_id, date_from=date_from, date_to=date_to
            )

    def verify_conservation(self) -> list[ConservationDiscrepancy]:
        with self._read() as session:
            return ReconciliationSelector(session).verify_conservation()
