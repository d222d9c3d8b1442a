"""
Module: inventory_kernel.db.types
Responsibility: Column types and rounding helpers for quantities and
    conversion ratios.  Centralizes precision so that every model and service
    uses identical definitions.
Architecture position: Kernel > DB.  May be imported by models/, domain/,
    services/, and selectors/.  MUST NOT import from any of those layers.

Invariants enforced:
    - No floats anywhere in the stock ledger.  Quantities and ratios are
      Decimal end to end, including on backends without a native exact
      NUMERIC type (ExactDecimal stores canonical strings there).
    - Base quantities are scaled to QUANTITY_DECIMAL_PLACES only at the
      point of persistence (round_quantity); there is no intermediate
      rounding between qty * ratio and the stored value.
    - Effective ratios are quantized once, at resolution time
      (round_ratio), so the in-memory snapshot equals the stored snapshot.

Failure modes:
    - decimal.InvalidOperation on a non-numeric string passed to
      to_decimal().
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from sqlalchemy import Numeric, String
from sqlalchemy.types import TypeDecorator

# Stock quantities and line base quantities (base units)
QUANTITY_DECIMAL_PLACES = 3
# Quantities as entered on a line (input unit)
INPUT_QUANTITY_DECIMAL_PLACES = 9
# Effective multiplier to base unit
RATIO_DECIMAL_PLACES = 18
DEFAULT_ROUNDING = ROUND_HALF_UP

# Widths of the free-text transaction columns
REFERENCE_NO_LENGTH = 50
UNIT_NAME_LENGTH = 20
LINE_NOTE_LENGTH = 255

ZERO = Decimal("0")


class ExactDecimal(TypeDecorator):
    """
    Decimal column that never round-trips through float.

    Contract:
        On PostgreSQL the column is a native NUMERIC(precision, scale).  On
        every other dialect (SQLite for local runs) the value is stored as
        its canonical fixed-point string.

    Guarantees:
        - process_bind_param: Decimal -> quantized Decimal (PostgreSQL) or
          fixed-point string (other dialects).
        - process_result_value: always returns Decimal (or None).
        - cache_ok=True enables SQLAlchemy statement caching.
    """

    impl = String(64)
    cache_ok = True

    def __init__(self, precision: int, scale: int):
        super().__init__()
        self.precision = precision
        self.scale = scale
        self._quantum = Decimal(1).scaleb(-scale)

    def load_dialect_impl(self, dialect):
        if dialect.name == "postgresql":
            return dialect.type_descriptor(
                Numeric(self.precision, self.scale, asdecimal=True)
            )
        return dialect.type_descriptor(String(64))

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        value = to_decimal(value).quantize(self._quantum, rounding=DEFAULT_ROUNDING)
        if dialect.name == "postgresql":
            return value
        return format(value, "f")

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return to_decimal(value)


# Base-unit quantities (stock rows, line base_qty)
Quantity = ExactDecimal(28, QUANTITY_DECIMAL_PLACES)

# Quantities as entered in a line's unit
InputQuantity = ExactDecimal(38, INPUT_QUANTITY_DECIMAL_PLACES)

# Effective conversion multipliers
Ratio = ExactDecimal(38, RATIO_DECIMAL_PLACES)


def to_decimal(value: Any) -> Decimal:
    """
    Coerce a numeric value to Decimal without passing through float.

    Floats are converted through their shortest repr (``Decimal(str(x))``)
    so 0.1 becomes Decimal("0.1") rather than its binary expansion.
    """
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


def _quantize(value: Decimal, places: int) -> Decimal:
    return value.quantize(Decimal(1).scaleb(-places), rounding=DEFAULT_ROUNDING)


def round_quantity(value: Decimal) -> Decimal:
    """
    Scale a base quantity to the persisted precision.

    This is the ONLY sanctioned rounding for base quantities.  The effect
    engine applies it to ``qty * ratio`` right before a delta reaches the
    stock ledger, and the record store applies it to the persisted
    ``base_qty`` snapshot, so both always agree.
    """
    return _quantize(value, QUANTITY_DECIMAL_PLACES)


def round_ratio(value: Decimal) -> Decimal:
    """Quantize an effective ratio to its stored precision."""
    return _quantize(value, RATIO_DECIMAL_PLACES)


def fits_input_precision(value: Decimal) -> bool:
    """True when ``value`` can be stored as a line quantity without loss."""
    return _quantize(value, INPUT_QUANTITY_DECIMAL_PLACES) == value
