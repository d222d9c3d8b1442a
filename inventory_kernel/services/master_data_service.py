"""
Service layer for item and warehouse master data.

Maintains items with their unit conversion tables, and warehouses.  The
stock core consumes this through ``get_item_units()`` (base unit and
conversions at entry time) and ``require_warehouse()`` (existence check).

Returns ItemInfo / WarehouseInfo DTOs instead of ORM entities.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable
from uuid import UUID

from sqlalchemy import select

from inventory_kernel.db.types import ZERO, round_quantity, round_ratio, to_decimal
from inventory_kernel.domain.units import ItemUnits, UnitConversion
from inventory_kernel.exceptions import (
    InvalidConversionError,
    ItemNotFoundError,
    ValidationError,
    WarehouseNotFoundError,
)
from inventory_kernel.logging_config import get_logger
from inventory_kernel.models.item import Item, ItemUnit
from inventory_kernel.models.warehouse import Warehouse
from inventory_kernel.services.base import BaseService

logger = get_logger("services.master_data")

# NUMERIC(38, 18) leaves 20 integer digits
_MAX_RATIO = Decimal(10) ** 20


@dataclass(frozen=True)
class ItemInfo:
    """Immutable DTO for item master data."""

    id: UUID
    code: str
    name: str
    category: str | None
    base_unit: str
    min_stock: Decimal
    is_active: bool
    conversions: tuple[UnitConversion, ...]

    @property
    def units(self) -> ItemUnits:
        return ItemUnits(
            item_id=self.id,
            base_unit=self.base_unit,
            conversions=self.conversions,
        )


@dataclass(frozen=True)
class WarehouseInfo:
    """Immutable DTO for a warehouse."""

    id: UUID
    name: str
    location: str | None
    pic: str | None
    phone: str | None
    is_active: bool


class MasterDataService(BaseService[Item]):
    """
    Service for managing items, their conversions, and warehouses.

    Enforces the item invariants: the base unit is never listed as a
    conversion, conversion names are unique per item, ratios are positive
    and fit the stored precision, and operators are ``*`` or ``/``.
    """

    # =========================================================================
    # Items
    # =========================================================================

    def _to_item_dto(self, item: Item) -> ItemInfo:
        units = ItemUnits.from_model(item)
        return ItemInfo(
            id=item.id,
            code=item.code,
            name=item.name,
            category=item.category,
            base_unit=item.base_unit,
            min_stock=item.min_stock,
            is_active=item.is_active,
            conversions=units.conversions,
        )

    def _get_item(self, item_id: UUID) -> Item:
        item = self.session.get(Item, item_id)
        if item is None:
            raise ItemNotFoundError(str(item_id))
        return item

    def _validate_conversions(
        self,
        item_code: str,
        base_unit: str,
        conversions: Iterable[UnitConversion],
    ) -> list[UnitConversion]:
        seen: set[str] = set()
        validated = []
        for conversion in conversions:
            name = conversion.name.strip() if conversion.name else ""
            if not name:
                raise InvalidConversionError(item_code, conversion.name, "unit name is required")
            if name == base_unit:
                raise InvalidConversionError(
                    item_code, name, "base unit cannot be listed as a conversion"
                )
            if name in seen:
                raise InvalidConversionError(item_code, name, "duplicate unit name")
            if conversion.ratio >= _MAX_RATIO or round_ratio(conversion.ratio) != conversion.ratio:
                raise InvalidConversionError(
                    item_code, name, f"ratio {conversion.ratio} exceeds stored precision"
                )
            if conversion.effective_ratio <= ZERO:
                raise InvalidConversionError(
                    item_code, name, "effective ratio rounds to zero"
                )
            seen.add(name)
            validated.append(conversion)
        return validated

    def _set_units(self, item: Item, conversions: list[UnitConversion]) -> None:
        if item.units:
            item.units.clear()
            # Old rows must be gone before new rows reuse their names
            self.session.flush()
        for position, conversion in enumerate(conversions):
            item.units.append(
                ItemUnit(
                    unit_name=conversion.name.strip(),
                    conversion_ratio=conversion.ratio,
                    operator=conversion.operator.value,
                    position=position,
                )
            )

    def create_item(
        self,
        code: str,
        name: str,
        base_unit: str,
        conversions: Iterable[UnitConversion] = (),
        category: str | None = None,
        min_stock: Decimal | int | str = ZERO,
        actor_id: UUID | None = None,
    ) -> ItemInfo:
        """
        Create an item with its conversion table.

        Raises:
            ValidationError: Missing code/name/base unit, duplicate code, or
                negative min_stock.
            InvalidConversionError: A conversion breaks the item invariants.
        """
        if not code or not code.strip():
            raise ValidationError("code", "item code is required")
        if not name or not name.strip():
            raise ValidationError("name", "item name is required")
        if not base_unit or not base_unit.strip():
            raise ValidationError("base_unit", "base unit is required")

        code = code.strip()
        base_unit = base_unit.strip()
        existing = self.session.execute(
            select(Item.id).where(Item.code == code)
        ).scalar_one_or_none()
        if existing is not None:
            raise ValidationError("code", f"item code already exists: {code}")

        min_stock = to_decimal(min_stock)
        if min_stock < ZERO:
            raise ValidationError("min_stock", "must not be negative")

        validated = self._validate_conversions(code, base_unit, conversions)

        item = Item(
            code=code,
            name=name.strip(),
            category=category,
            base_unit=base_unit,
            min_stock=round_quantity(min_stock),
            is_active=True,
            created_by_id=actor_id,
        )
        self.session.add(item)
        self._set_units(item, validated)
        self.session.flush()

        logger.info(
            "item_created",
            extra={
                "item_id": str(item.id),
                "code": code,
                "base_unit": base_unit,
                "conversion_count": len(validated),
            },
        )
        return self._to_item_dto(item)

    def get_item(self, item_id: UUID) -> ItemInfo:
        """
        Raises:
            ItemNotFoundError: If the item doesn't exist.
        """
        return self._to_item_dto(self._get_item(item_id))

    def find_item_by_code(self, code: str) -> ItemInfo | None:
        item = self.session.execute(
            select(Item).where(Item.code == code)
        ).scalar_one_or_none()
        return self._to_item_dto(item) if item is not None else None

    def get_item_units(self, item_id: UUID) -> ItemUnits:
        """Base unit and conversions of an item, for resolving entered units."""
        return ItemUnits.from_model(self._get_item(item_id))

    def replace_conversions(
        self,
        item_id: UUID,
        conversions: Iterable[UnitConversion],
        actor_id: UUID | None = None,
    ) -> ItemInfo:
        """
        Replace an item's conversion table.

        Committed transaction lines keep the ratio they were entered with;
        only lines entered after this call see the new table.
        """
        item = self._get_item(item_id)
        validated = self._validate_conversions(item.code, item.base_unit, conversions)
        self._set_units(item, validated)
        item.updated_by_id = actor_id
        self.session.flush()

        logger.info(
            "item_conversions_replaced",
            extra={
                "item_id": str(item.id),
                "conversions": [f"{c.name}{c.operator.value}{c.ratio}" for c in validated],
            },
        )
        return self._to_item_dto(item)

    def update_item(
        self,
        item_id: UUID,
        name: str | None = None,
        category: str | None = None,
        min_stock: Decimal | int | str | None = None,
        is_active: bool | None = None,
        actor_id: UUID | None = None,
    ) -> ItemInfo:
        """Update descriptive fields.  Code and base unit are fixed."""
        item = self._get_item(item_id)
        if name is not None:
            if not name.strip():
                raise ValidationError("name", "item name is required")
            item.name = name.strip()
        if category is not None:
            item.category = category
        if min_stock is not None:
            min_stock = to_decimal(min_stock)
            if min_stock < ZERO:
                raise ValidationError("min_stock", "must not be negative")
            item.min_stock = round_quantity(min_stock)
        if is_active is not None:
            item.is_active = is_active
        item.updated_by_id = actor_id
        self.session.flush()
        return self._to_item_dto(item)

    # =========================================================================
    # Warehouses
    # =========================================================================

    def _to_warehouse_dto(self, warehouse: Warehouse) -> WarehouseInfo:
        return WarehouseInfo(
            id=warehouse.id,
            name=warehouse.name,
            location=warehouse.location,
            pic=warehouse.pic,
            phone=warehouse.phone,
            is_active=warehouse.is_active,
        )

    def create_warehouse(
        self,
        name: str,
        location: str | None = None,
        pic: str | None = None,
        phone: str | None = None,
        actor_id: UUID | None = None,
    ) -> WarehouseInfo:
        if not name or not name.strip():
            raise ValidationError("name", "warehouse name is required")

        warehouse = Warehouse(
            name=name.strip(),
            location=location,
            pic=pic,
            phone=phone,
            is_active=True,
            created_by_id=actor_id,
        )
        self.session.add(warehouse)
        self.session.flush()

        logger.info(
            "warehouse_created",
            extra={"warehouse_id": str(warehouse.id), "warehouse_name": warehouse.name},
        )
        return self._to_warehouse_dto(warehouse)

    def get_warehouse(self, warehouse_id: UUID) -> WarehouseInfo:
        return self._to_warehouse_dto(self.require_warehouse(warehouse_id))

    def list_warehouses(self) -> list[WarehouseInfo]:
        warehouses = self.session.execute(
            select(Warehouse).order_by(Warehouse.name)
        ).scalars().all()
        return [self._to_warehouse_dto(w) for w in warehouses]

    def find_warehouse_by_name(self, name: str) -> WarehouseInfo | None:
        warehouse = self.session.execute(
            select(Warehouse).where(Warehouse.name == name.strip()).order_by(Warehouse.id)
        ).scalars().first()
        return self._to_warehouse_dto(warehouse) if warehouse is not None else None

    def warehouse_exists(self, warehouse_id: UUID) -> bool:
        return self.session.get(Warehouse, warehouse_id) is not None

    def require_warehouse(self, warehouse_id: UUID) -> Warehouse:
        """
        Raises:
            WarehouseNotFoundError: If the warehouse doesn't exist.
        """
        warehouse = self.session.get(Warehouse, warehouse_id)
        if warehouse is None:
            raise WarehouseNotFoundError(str(warehouse_id))
        return warehouse
