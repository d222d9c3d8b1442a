"""
Pure domain layer.

Data transfer objects, the unit resolver and the effect computation, with
NO dependencies on:
- ORM sessions
- Database connections
- Wall-clock time (use an injected Clock)
- I/O

All domain objects are immutable and deterministic.
"""

from inventory_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from inventory_kernel.domain.dtos import (
    ConservationDiscrepancy,
    StockInfo,
    StockMovement,
    TransactionFilter,
    TransactionInfo,
    TransactionLineInfo,
    TransactionLineRequest,
    TransactionRequest,
)
from inventory_kernel.domain.effects import (
    EffectLine,
    StockDelta,
    compute_effects,
    line_base_qty,
)
from inventory_kernel.domain.units import (
    ItemUnits,
    ResolvedQuantity,
    UnitConversion,
    resolve_base_qty,
    resolve_base_qty_lenient,
)
from inventory_kernel.domain.values import (
    ConversionOperator,
    EffectDirection,
    TransactionType,
)

__all__ = [
    "Clock",
    "ConservationDiscrepancy",
    "ConversionOperator",
    "DeterministicClock",
    "EffectDirection",
    "EffectLine",
    "ItemUnits",
    "ResolvedQuantity",
    "StockDelta",
    "StockInfo",
    "StockMovement",
    "SystemClock",
    "TransactionFilter",
    "TransactionInfo",
    "TransactionLineInfo",
    "TransactionLineRequest",
    "TransactionRequest",
    "TransactionType",
    "UnitConversion",
    "compute_effects",
    "line_base_qty",
    "resolve_base_qty",
    "resolve_base_qty_lenient",
]
