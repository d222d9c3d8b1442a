"""
Module: inventory_kernel.selectors.stock_selector
Responsibility: Non-locking reads of the stock ledger for display: single
    quantities, the full stock listing, and the low-stock listing.
Architecture position: Kernel > Selectors.

Failure modes:
    - None.  Missing rows read as quantity 0.

Note:
    Quantity comparisons (low stock) are made in Python on Decimal values.
    Outside PostgreSQL quantities are stored as strings, where SQL
    comparison would be lexicographic.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import select

from inventory_kernel.db.types import ZERO, round_quantity
from inventory_kernel.domain.dtos import StockInfo
from inventory_kernel.models.item import Item
from inventory_kernel.models.stock import StockEntry
from inventory_kernel.models.warehouse import Warehouse
from inventory_kernel.selectors.base import BaseSelector


class StockSelector(BaseSelector[StockEntry]):
    """Read-side queries over ``stock``."""

    def get_qty(self, item_id: UUID, warehouse_id: UUID) -> Decimal:
        """Current quantity in base units; 0 when the pair has no activity."""
        quantity = self.session.execute(
            select(StockEntry.quantity).where(
                StockEntry.item_id == item_id,
                StockEntry.warehouse_id == warehouse_id,
            )
        ).scalar_one_or_none()
        return quantity if quantity is not None else round_quantity(ZERO)

    def _rows(self, item_id: UUID | None = None, warehouse_id: UUID | None = None):
        stmt = (
            select(StockEntry, Item, Warehouse)
            .join(Item, Item.id == StockEntry.item_id)
            .join(Warehouse, Warehouse.id == StockEntry.warehouse_id)
            .order_by(Item.code, Warehouse.name, StockEntry.warehouse_id)
        )
        if item_id is not None:
            stmt = stmt.where(StockEntry.item_id == item_id)
        if warehouse_id is not None:
            stmt = stmt.where(StockEntry.warehouse_id == warehouse_id)
        return self.session.execute(stmt).all()

    @staticmethod
    def _to_dto(entry: StockEntry, item: Item, warehouse: Warehouse) -> StockInfo:
        return StockInfo(
            item_id=entry.item_id,
            warehouse_id=entry.warehouse_id,
            quantity=entry.quantity,
            item_code=item.code,
            item_name=item.name,
            base_unit=item.base_unit,
            warehouse_name=warehouse.name,
            min_stock=item.min_stock,
            last_updated=entry.last_updated,
        )

    def list_stocks(
        self,
        item_id: UUID | None = None,
        warehouse_id: UUID | None = None,
    ) -> list[StockInfo]:
        """Every stock row (including zero rows), ordered by item code."""
        return [self._to_dto(*row) for row in self._rows(item_id, warehouse_id)]

    def total_for_item(self, item_id: UUID) -> Decimal:
        """Quantity of an item summed over all warehouses."""
        return sum(
            (info.quantity for info in self.list_stocks(item_id=item_id)),
            round_quantity(ZERO),
        )

    def list_low_stock(self, warehouse_id: UUID | None = None) -> list[StockInfo]:
        """
        Stock rows of active items whose quantity is below the item's
        ``min_stock``.  Items with ``min_stock == 0`` never appear.
        """
        return [
            self._to_dto(entry, item, warehouse)
            for entry, item, warehouse in self._rows(warehouse_id=warehouse_id)
            if item.is_active and item.min_stock > ZERO and entry.quantity < item.min_stock
        ]
