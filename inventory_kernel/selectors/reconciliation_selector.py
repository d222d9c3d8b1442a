"""
Module: inventory_kernel.selectors.reconciliation_selector
Responsibility: Conservation audit.  Replays the stored effect of every
    committed transaction and compares the result with the ``stock`` table.
Architecture position: Kernel > Selectors.  Used by tests after every
    scenario and by scripts/reconcile_stock.py.

Invariants enforced:
    - Conservation: every stock row equals the sum of the applied deltas of
      all committed transactions on its (item, warehouse).  This selector
      only checks it; enforcement is the unit of work's atomicity.

Failure modes:
    - None; discrepancies are returned, not raised.

Audit relevance:
    A non-empty result means stock and the transaction log have diverged.
    The replay uses the same compute_effects() as the ledger writes, with
    the stored ratio snapshots, so a consistent ledger always verifies
    clean regardless of later master-data edits.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import select

from inventory_kernel.db.types import ZERO, round_quantity
from inventory_kernel.domain.dtos import ConservationDiscrepancy
from inventory_kernel.domain.effects import EffectLine, compute_effects
from inventory_kernel.domain.values import TransactionType
from inventory_kernel.logging_config import get_logger
from inventory_kernel.models.stock import StockEntry
from inventory_kernel.models.transaction import InventoryTransaction
from inventory_kernel.selectors.base import BaseSelector

logger = get_logger("selectors.reconciliation")


class ReconciliationSelector(BaseSelector[StockEntry]):
    """Compares the stock ledger to a replay of the transaction log."""

    def expected_balances(self) -> dict[tuple[UUID, UUID], Decimal]:
        """(warehouse_id, item_id) -> replayed quantity, for every touched pair."""
        expected: dict[tuple[UUID, UUID], Decimal] = {}
        for transaction in self.session.execute(select(InventoryTransaction)).scalars():
            deltas = compute_effects(
                transaction_type=TransactionType(transaction.transaction_type),
                source_warehouse_id=transaction.source_warehouse_id,
                target_warehouse_id=transaction.target_warehouse_id,
                lines=[
                    EffectLine(item_id=line.item_id, qty=line.qty, ratio=line.ratio)
                    for line in transaction.lines
                ],
            )
            for delta in deltas:
                key = (delta.warehouse_id, delta.item_id)
                expected[key] = expected.get(key, ZERO) + delta.delta
        return expected

    def actual_balances(self) -> dict[tuple[UUID, UUID], Decimal]:
        """(warehouse_id, item_id) -> stored quantity, for every stock row."""
        rows = self.session.execute(
            select(StockEntry.warehouse_id, StockEntry.item_id, StockEntry.quantity)
        ).all()
        return {(row.warehouse_id, row.item_id): row.quantity for row in rows}

    def verify_conservation(self) -> list[ConservationDiscrepancy]:
        """
        Every pair whose stored quantity differs from the replay.

        A pair with no stock row counts as quantity 0.  The result is
        ordered by (warehouse_id, item_id) and empty when the ledger is
        consistent.
        """
        expected = self.expected_balances()
        actual = self.actual_balances()

        discrepancies = []
        for key in sorted(set(expected) | set(actual), key=lambda k: (str(k[0]), str(k[1]))):
            want = round_quantity(expected.get(key, ZERO))
            have = round_quantity(actual.get(key, ZERO))
            if want != have:
                discrepancies.append(
                    ConservationDiscrepancy(
                        warehouse_id=key[0],
                        item_id=key[1],
                        expected=want,
                        actual=have,
                    )
                )

        if discrepancies:
            logger.warning(
                "conservation_violated",
                extra={
                    "discrepancy_count": len(discrepancies),
                    "pairs": [
                        {
                            "warehouse_id": str(d.warehouse_id),
                            "item_id": str(d.item_id),
                            "expected": d.expected,
                            "actual": d.actual,
                        }
                        for d in discrepancies
                    ],
                },
            )
        else:
            logger.info("conservation_verified", extra={"pair_count": len(actual)})
        return discrepancies
