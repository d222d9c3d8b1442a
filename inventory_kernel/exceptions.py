"""
Typed Exception Hierarchy for the Inventory Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers of the stock ledger (UI handlers, import jobs, retry loops) have to
react differently to a rejected request, a stock deficit and a lock timeout.
Parsing message strings for that is fragile, so:

  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, API-safe)
  3. Exceptions carry structured DATA (not just a message string)

Example:
    try:
        coordinator.create(request)
    except InsufficientStockError as e:
        return {
            "error": e.code,
            "item_id": e.item_id,
            "available": str(e.available),
            "requested": str(e.requested),
        }
    except LockTimeoutError:
        retry_later()

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    InventoryKernelError (base)
    |
    +-- ValidationError
    |
    +-- MasterDataError
    |   +-- ItemNotFoundError
    |   +-- WarehouseNotFoundError
    |   +-- UnknownUnitError
    |   +-- InvalidConversionError
    |
    +-- StockError
    |   +-- InsufficientStockError
    |
    +-- TransactionError
    |   +-- TransactionNotFoundError
    |   +-- DuplicateReferenceError
    |   +-- TransactionTypeImmutableError
    |
    +-- ConcurrencyError
    |   +-- LockTimeoutError
    |
    +-- ImmutabilityError
        +-- ImmutabilityViolationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Validation      | VALIDATION_ERROR            | Request rejected before any lock is taken
----------------|-----------------------------|-----------------------------------------
Master data     | ITEM_NOT_FOUND              | Item ID doesn't exist
                | WAREHOUSE_NOT_FOUND         | Warehouse ID doesn't exist
                | UNKNOWN_UNIT                | Unit is neither base unit nor a conversion
                | INVALID_CONVERSION          | Conversion table breaks item invariants
----------------|-----------------------------|-----------------------------------------
Stock           | INSUFFICIENT_STOCK          | Decrement would drive a stock row negative
----------------|-----------------------------|-----------------------------------------
Transaction     | TRANSACTION_NOT_FOUND       | Update/delete target doesn't exist
                | DUPLICATE_REFERENCE         | Reference number already used
                | TRANSACTION_TYPE_IMMUTABLE  | Update tried to change the type
----------------|-----------------------------|-----------------------------------------
Concurrency     | LOCK_TIMEOUT                | Row lock not acquired within the bound
----------------|-----------------------------|-----------------------------------------
Immutability    | IMMUTABILITY_VIOLATION      | UPDATE of a committed transaction line

===============================================================================
PROPAGATION
===============================================================================

Services raise; they never commit or roll back.  The unit of work
(inventory_kernel.db.engine.unit_of_work) rolls back on any exception and
re-raises it unchanged, so the caller always sees the typed error and the
persisted state is exactly what it was before the call.
"""

from decimal import Decimal


class InventoryKernelError(Exception):
    """
    Base exception for all inventory kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "INVENTORY_KERNEL_ERROR"


# Validation


class ValidationError(InventoryKernelError):
    """Transaction request failed structural validation."""

    code: str = "VALIDATION_ERROR"

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid {field}: {reason}")


# Master data


class MasterDataError(InventoryKernelError):
    """Base exception for item / warehouse master data errors."""

    code: str = "MASTER_DATA_ERROR"


class ItemNotFoundError(MasterDataError):
    """Item with given ID was not found."""

    code: str = "ITEM_NOT_FOUND"

    def __init__(self, item_id: str):
        self.item_id = item_id
        super().__init__(f"Item not found: {item_id}")


class WarehouseNotFoundError(MasterDataError):
    """Warehouse with given ID was not found."""

    code: str = "WAREHOUSE_NOT_FOUND"

    def __init__(self, warehouse_id: str):
        self.warehouse_id = warehouse_id
        super().__init__(f"Warehouse not found: {warehouse_id}")


class UnknownUnitError(MasterDataError):
    """Unit is neither the item's base unit nor one of its conversions."""

    code: str = "UNKNOWN_UNIT"

    def __init__(self, item_id: str, unit: str):
        self.item_id = item_id
        self.unit = unit
        super().__init__(f"Unknown unit '{unit}' for item {item_id}")


class InvalidConversionError(MasterDataError):
    """Conversion table violates the item's unit invariants."""

    code: str = "INVALID_CONVERSION"

    def __init__(self, item_code: str, unit: str, reason: str):
        self.item_code = item_code
        self.unit = unit
        self.reason = reason
        super().__init__(
            f"Invalid conversion '{unit}' for item {item_code}: {reason}"
        )


# Stock


class StockError(InventoryKernelError):
    """Base exception for stock ledger errors."""

    code: str = "STOCK_ERROR"


class InsufficientStockError(StockError):
    """
    A decrement would drive a stock row below zero.

    Raised from inside the locked read-modify-write; nothing is applied.
    Quantities are in base units.
    """

    code: str = "INSUFFICIENT_STOCK"

    def __init__(
        self,
        item_id: str,
        warehouse_id: str,
        available: Decimal,
        requested: Decimal,
    ):
        self.item_id = item_id
        self.warehouse_id = warehouse_id
        self.available = available
        self.requested = requested
        super().__init__(
            f"Insufficient stock for item {item_id} in warehouse {warehouse_id}: "
            f"available={available}, requested={requested}"
        )


# Transactions


class TransactionError(InventoryKernelError):
    """Base exception for transaction lifecycle errors."""

    code: str = "TRANSACTION_ERROR"


class TransactionNotFoundError(TransactionError):
    """Transaction with given ID was not found."""

    code: str = "TRANSACTION_NOT_FOUND"

    def __init__(self, transaction_id: str):
        self.transaction_id = transaction_id
        super().__init__(f"Transaction not found: {transaction_id}")


class DuplicateReferenceError(TransactionError):
    """Reference number is already used by another transaction."""

    code: str = "DUPLICATE_REFERENCE"

    def __init__(self, reference_no: str):
        self.reference_no = reference_no
        super().__init__(f"Reference number already exists: {reference_no}")


class TransactionTypeImmutableError(TransactionError):
    """An update request tried to change the transaction type."""

    code: str = "TRANSACTION_TYPE_IMMUTABLE"

    def __init__(self, transaction_id: str, current_type: str, requested_type: str):
        self.transaction_id = transaction_id
        self.current_type = current_type
        self.requested_type = requested_type
        super().__init__(
            f"Cannot change type of transaction {transaction_id} "
            f"from {current_type} to {requested_type}"
        )


# Concurrency


class ConcurrencyError(InventoryKernelError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class LockTimeoutError(ConcurrencyError):
    """A row lock could not be acquired within the configured bound.

    The unit of work was rolled back; the caller may retry.
    """

    code: str = "LOCK_TIMEOUT"

    def __init__(self, resource: str, timeout_ms: int):
        self.resource = resource
        self.timeout_ms = timeout_ms
        super().__init__(
            f"Lock wait on {resource} exceeded {timeout_ms}ms"
        )


# Immutability


class ImmutabilityError(InventoryKernelError):
    """Base exception for immutability-related errors."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """
    Attempted to modify an immutable record.

    Committed transaction lines are replaced wholesale by the lifecycle
    coordinator, never edited in place.
    """

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Cannot modify {entity_type} {entity_id}: {reason}"
        )
