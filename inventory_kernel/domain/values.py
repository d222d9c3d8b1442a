"""
Values -- enumerations shared by the domain, services and selectors.

Architecture position:
    Kernel > Domain -- pure, zero I/O.  Models store these as their string
    values; services convert at the boundary.
"""

from enum import Enum


class TransactionType(str, Enum):
    """
    Kind of stock movement a transaction records.

    Contract:
        IN and ADJUSTMENT add stock at the source warehouse, OUT removes
        it, TRANSFER moves it from source to target.
    """

    IN = "IN"
    OUT = "OUT"
    TRANSFER = "TRANSFER"
    ADJUSTMENT = "ADJUSTMENT"

    @property
    def requires_target(self) -> bool:
        return self is TransactionType.TRANSFER


class EffectDirection(str, Enum):
    """Apply a transaction's effect, or undo it."""

    APPLY = "apply"
    REVERT = "revert"


class ConversionOperator(str, Enum):
    """How a conversion's ratio maps one alternate unit to base units."""

    MULTIPLY = "*"
    DIVIDE = "/"
