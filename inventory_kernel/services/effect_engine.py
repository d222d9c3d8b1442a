"""
TransactionEffectEngine -- applies or reverts a transaction's stock effect.

Responsibility:
    Turns a stored transaction (type, warehouses, lines with their ratio
    snapshots) into ordered StockDeltas (domain/effects.py) and pushes each
    one through StockLedgerService.apply_delta().

Architecture position:
    Kernel > Services -- imperative shell around the pure effect
    computation.  Called only by TransactionLifecycleCoordinator.

Invariants enforced:
    - The ratio comes from the stored line.  Item master data is never
      consulted here, so editing a conversion cannot change what a revert
      subtracts.
    - Deltas are applied in (warehouse_id, item_id) order.
    - Decrements require sufficiency, increments never do.  REVERT of IN /
      ADJUSTMENT is a decrement and is checked like any other, unless the
      engine was built with ``allow_negative_revert``.
    - The first failing delta aborts the call; the enclosing unit of work
      rolls back the deltas already applied.

Failure modes:
    - InsufficientStockError, LockTimeoutError (from the ledger).
"""

from sqlalchemy.orm import Session

from inventory_kernel.db.engine import DEFAULT_LOCK_TIMEOUT_MS
from inventory_kernel.domain.clock import Clock
from inventory_kernel.domain.effects import EffectLine, StockDelta, compute_effects
from inventory_kernel.domain.values import EffectDirection, TransactionType
from inventory_kernel.logging_config import get_logger
from inventory_kernel.models.transaction import InventoryTransaction
from inventory_kernel.services.stock_ledger_service import StockLedgerService

logger = get_logger("services.effect_engine")


class TransactionEffectEngine:
    """
    Computes and applies stock effects.

    Usage:
        engine = TransactionEffectEngine(session)
        engine.apply(transaction)                       # after insert
        engine.apply(transaction, EffectDirection.REVERT)  # before delete
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        lock_timeout_ms: int = DEFAULT_LOCK_TIMEOUT_MS,
        allow_negative_revert: bool = False,
    ):
        self._ledger = StockLedgerService(session, clock=clock, lock_timeout_ms=lock_timeout_ms)
        self._allow_negative_revert = allow_negative_revert

    @staticmethod
    def effects_of(
        transaction: InventoryTransaction,
        direction: EffectDirection = EffectDirection.APPLY,
        transaction_type: TransactionType | None = None,
    ) -> list[StockDelta]:
        """
        The deltas ``transaction`` causes in ``direction``.

        ``transaction_type`` overrides the stored type; update passes the
        original type explicitly.
        """
        return compute_effects(
            transaction_type=transaction_type or TransactionType(transaction.transaction_type),
            source_warehouse_id=transaction.source_warehouse_id,
            target_warehouse_id=transaction.target_warehouse_id,
            lines=[
                EffectLine(item_id=line.item_id, qty=line.qty, ratio=line.ratio)
                for line in transaction.lines
            ],
            direction=direction,
        )

    def apply(
        self,
        transaction: InventoryTransaction,
        direction: EffectDirection = EffectDirection.APPLY,
        transaction_type: TransactionType | None = None,
    ) -> list[StockDelta]:
        """
        Apply the effect of ``transaction`` (or its inverse) to stock.

        Returns:
            The deltas that were applied, in application order.

        Raises:
            InsufficientStockError: a decrement failed its check.
            LockTimeoutError: a stock row could not be locked in time.
        """
        deltas = self.effects_of(transaction, direction, transaction_type)
        skip_check = direction == EffectDirection.REVERT and self._allow_negative_revert

        for delta in deltas:
            self._ledger.apply_delta(
                warehouse_id=delta.warehouse_id,
                item_id=delta.item_id,
                delta=delta.delta,
                expect_sufficient=delta.expect_sufficient and not skip_check,
            )

        logger.info(
            "transaction_effects_applied",
            extra={
                "transaction_id": str(transaction.id),
                "direction": EffectDirection(direction).value,
                "delta_count": len(deltas),
                "rows": [
                    {"warehouse_id": str(d.warehouse_id), "item_id": str(d.item_id), "delta": d.delta}
                    for d in deltas
                ],
            },
        )
        return deltas

    def lock_rows(self, *delta_sets: list[StockDelta]) -> None:
        """
        Lock every stock row named in ``delta_sets`` in global order.

        Update touches the rows of the old and the new line set.  Taking
        them all before the revert keeps the lock order global across both
        steps.
        """
        keys = sorted(
            {(d.warehouse_id, d.item_id) for deltas in delta_sets for d in deltas},
            key=lambda k: (str(k[0]), str(k[1])),
        )
        for warehouse_id, item_id in keys:
            self._ledger.lock(warehouse_id, item_id)

    def revert(
        self,
        transaction: InventoryTransaction,
        transaction_type: TransactionType | None = None,
    ) -> list[StockDelta]:
        """Apply the exact inverse of the stored effect of ``transaction``."""
        return self.apply(transaction, EffectDirection.REVERT, transaction_type)
