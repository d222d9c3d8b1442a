"""Selectors for the inventory kernel (read side)."""

from inventory_kernel.selectors.reconciliation_selector import ReconciliationSelector
from inventory_kernel.selectors.stock_selector import StockSelector
from inventory_kernel.selectors.transaction_selector import (
    TransactionSelector,
    transaction_query,
)

__all__ = [
    "ReconciliationSelector",
    "StockSelector",
    "TransactionSelector",
    "transaction_query",
]
