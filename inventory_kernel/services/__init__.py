"""Services for the inventory kernel (write side and external interface)."""

from inventory_kernel.services.effect_engine import TransactionEffectEngine
from inventory_kernel.services.inventory_service import InventoryService
from inventory_kernel.services.lifecycle_coordinator import TransactionLifecycleCoordinator
from inventory_kernel.services.master_data_service import (
    ItemInfo,
    MasterDataService,
    WarehouseInfo,
)
from inventory_kernel.services.stock_ledger_service import StockLedgerService
from inventory_kernel.services.transaction_importer import (
    ImportFailure,
    ImportReport,
    TransactionImporter,
)
from inventory_kernel.services.transaction_store import LineRecord, TransactionRecordStore

__all__ = [
    "ImportFailure",
    "ImportReport",
    "InventoryService",
    "ItemInfo",
    "LineRecord",
    "MasterDataService",
    "StockLedgerService",
    "TransactionEffectEngine",
    "TransactionImporter",
    "TransactionLifecycleCoordinator",
    "TransactionRecordStore",
    "WarehouseInfo",
]
