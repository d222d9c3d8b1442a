"""
Unit conversion resolver.

Responsibility:
    Converts an entered (quantity, unit) pair into base units using an
    item's conversion table, and returns the effective ratio that the
    transaction line snapshots.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.  Services build an
    ``ItemUnits`` from the ORM item (``ItemUnits.from_model``) and call the
    resolver; the resolver never touches a session.

Invariants enforced:
    - The effective ratio is ``ratio`` for ``*`` conversions and
      ``1 / ratio`` for ``/`` conversions, quantized once to
      RATIO_DECIMAL_PLACES.  That quantized value is what gets stored on
      the line, so the in-memory and persisted snapshots are equal.
    - ``base_qty`` is the exact product ``qty * ratio``.  It is NOT rounded
      here; rounding happens only at persistence (db.types.round_quantity).
    - Unit names match exactly (case sensitive).

Failure modes:
    - UnknownUnitError from resolve_base_qty() when the unit is neither the
      base unit nor a listed conversion.
    - ValueError from UnitConversion on a non-positive ratio.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from inventory_kernel.db.types import round_ratio, to_decimal
from inventory_kernel.domain.values import ConversionOperator
from inventory_kernel.exceptions import UnknownUnitError

if TYPE_CHECKING:
    from inventory_kernel.models.item import Item as ItemModel

ONE = Decimal("1")


@dataclass(frozen=True)
class UnitConversion:
    """One named alternate unit of an item."""

    name: str
    ratio: Decimal
    operator: ConversionOperator = ConversionOperator.MULTIPLY

    def __post_init__(self) -> None:
        object.__setattr__(self, "ratio", to_decimal(self.ratio))
        object.__setattr__(self, "operator", ConversionOperator(self.operator))
        if not self.ratio.is_finite() or self.ratio <= 0:
            raise ValueError(f"Conversion ratio must be positive: {self.ratio}")

    @property
    def effective_ratio(self) -> Decimal:
        """Multiplier from this unit to the base unit."""
        if self.operator is ConversionOperator.DIVIDE:
            return round_ratio(ONE / self.ratio)
        return round_ratio(self.ratio)


@dataclass(frozen=True)
class ItemUnits:
    """
    The unit view of an item: its base unit and ordered conversions.

    Contract:
        Built from master data at entry time only.  Revert and replay use
        the ratio stored on the line and never consult this object.
    """

    item_id: UUID
    base_unit: str
    conversions: tuple[UnitConversion, ...] = ()

    def find(self, unit: str) -> UnitConversion | None:
        for conversion in self.conversions:
            if conversion.name == unit:
                return conversion
        return None

    @classmethod
    def from_model(cls, model: ItemModel) -> ItemUnits:
        return cls(
            item_id=model.id,
            base_unit=model.base_unit,
            conversions=tuple(
                UnitConversion(
                    name=unit.unit_name,
                    ratio=unit.conversion_ratio,
                    operator=ConversionOperator(unit.operator),
                )
                for unit in model.units
            ),
        )


@dataclass(frozen=True)
class ResolvedQuantity:
    """
    Result of resolving an entered quantity.

    ``ratio`` is the snapshot to persist; ``base_qty`` is unrounded.
    """

    qty: Decimal
    unit: str
    ratio: Decimal
    base_qty: Decimal


def resolve_base_qty(item: ItemUnits, qty: Decimal, unit: str) -> ResolvedQuantity:
    """
    Convert ``qty`` in ``unit`` to base units.

    Raises:
        UnknownUnitError: ``unit`` is neither the base unit nor a conversion.
    """
    qty = to_decimal(qty)
    if unit == item.base_unit:
        ratio = round_ratio(ONE)
    else:
        conversion = item.find(unit)
        if conversion is None:
            raise UnknownUnitError(item_id=str(item.item_id), unit=unit)
        ratio = conversion.effective_ratio

    return ResolvedQuantity(qty=qty, unit=unit, ratio=ratio, base_qty=qty * ratio)


def resolve_base_qty_lenient(
    item: ItemUnits,
    qty: Decimal,
    unit: str,
) -> tuple[ResolvedQuantity, bool]:
    """
    Bulk-import variant of resolve_base_qty().

    An unknown unit resolves with ratio 1 instead of failing.  Returns the
    resolution and whether the fallback was taken, so the caller can log
    it.  Interactive entry must use resolve_base_qty().
    """
    try:
        return resolve_base_qty(item, qty, unit), False
    except UnknownUnitError:
        qty = to_decimal(qty)
        ratio = round_ratio(ONE)
        return ResolvedQuantity(qty=qty, unit=unit, ratio=ratio, base_qty=qty * ratio), True
