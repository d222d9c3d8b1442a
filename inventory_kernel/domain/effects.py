"""
Effect computation -- the stock deltas a transaction causes.

Responsibility:
    Maps a transaction's type, warehouses and stored lines to the signed
    per-(warehouse, item) deltas it applies, or to their exact inverse.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.  TransactionEffectEngine
    (services/effect_engine.py) feeds the result to the stock ledger.

Effect mapping (APPLY; REVERT negates every delta):

    Type        | Source delta | Target delta
    ------------|--------------|-------------
    IN          | +base_qty    | -
    ADJUSTMENT  | +base_qty    | -
    OUT         | -base_qty    | -
    TRANSFER    | -base_qty    | +base_qty

Invariants enforced:
    - base_qty of a line is round_quantity(qty * ratio) using the ratio
      stored on the line.  The same function computes the persisted
      base_qty snapshot, so APPLY followed by REVERT is exact.
    - Deltas for the same (warehouse, item) are summed, and the result is
      ordered by (warehouse_id, item_id).  Every unit of work therefore
      locks stock rows in one global order.
    - A delta requires a sufficiency check iff it is negative.

Failure modes:
    - ValueError when a TRANSFER has no target warehouse (requests are
      validated earlier; this guards stored data).
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable
from uuid import UUID

from inventory_kernel.db.types import ZERO, round_quantity
from inventory_kernel.domain.values import EffectDirection, TransactionType

_SOURCE_SIGN = {
    TransactionType.IN: 1,
    TransactionType.ADJUSTMENT: 1,
    TransactionType.OUT: -1,
    TransactionType.TRANSFER: -1,
}


@dataclass(frozen=True)
class EffectLine:
    """The parts of a stored line that determine its stock effect."""

    item_id: UUID
    qty: Decimal
    ratio: Decimal


@dataclass(frozen=True)
class StockDelta:
    """Signed change to one stock row, in base units."""

    warehouse_id: UUID
    item_id: UUID
    delta: Decimal

    @property
    def expect_sufficient(self) -> bool:
        return self.delta < ZERO

    @property
    def lock_key(self) -> tuple[str, str]:
        return (str(self.warehouse_id), str(self.item_id))


def line_base_qty(qty: Decimal, ratio: Decimal) -> Decimal:
    """Base quantity of a line at persisted precision."""
    return round_quantity(qty * ratio)


def compute_effects(
    transaction_type: TransactionType,
    source_warehouse_id: UUID,
    target_warehouse_id: UUID | None,
    lines: Iterable[EffectLine],
    direction: EffectDirection = EffectDirection.APPLY,
) -> list[StockDelta]:
    """
    Compute the ordered stock deltas for a transaction.

    Returns:
        Deltas sorted by (warehouse_id, item_id), one per touched row.
        Rows whose net change is zero are omitted.
    """
    transaction_type = TransactionType(transaction_type)
    if transaction_type.requires_target and target_warehouse_id is None:
        raise ValueError("TRANSFER effect requires a target warehouse")

    sign = _SOURCE_SIGN[transaction_type]
    if direction == EffectDirection.REVERT:
        sign = -sign

    totals: dict[tuple[UUID, UUID], Decimal] = {}

    def _add(warehouse_id: UUID, item_id: UUID, amount: Decimal) -> None:
        key = (warehouse_id, item_id)
        totals[key] = totals.get(key, ZERO) + amount

    for line in lines:
        base_qty = line_base_qty(line.qty, line.ratio)
        _add(source_warehouse_id, line.item_id, sign * base_qty)
        if transaction_type.requires_target:
            _add(target_warehouse_id, line.item_id, -sign * base_qty)

    deltas = [
        StockDelta(warehouse_id=warehouse_id, item_id=item_id, delta=amount)
        for (warehouse_id, item_id), amount in totals.items()
        if amount != ZERO
    ]
    deltas.sort(key=lambda d: d.lock_key)
    return deltas
