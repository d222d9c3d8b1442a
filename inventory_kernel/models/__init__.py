"""ORM models for the inventory kernel."""

from inventory_kernel.models.item import Item, ItemUnit
from inventory_kernel.models.stock import StockEntry
from inventory_kernel.models.transaction import InventoryTransaction, TransactionLine
from inventory_kernel.models.warehouse import Warehouse

__all__ = [
    "InventoryTransaction",
    "Item",
    "ItemUnit",
    "StockEntry",
    "TransactionLine",
    "Warehouse",
]
