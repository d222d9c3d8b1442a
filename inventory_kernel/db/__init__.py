"""Database layer - engine, base classes, column types, and unit of work."""

from inventory_kernel.db.base import UUID, Base, TrackedBase, UUIDString
from inventory_kernel.db.engine import (
    create_tables,
    get_engine,
    get_session,
    get_session_factory,
    unit_of_work,
)
from inventory_kernel.db.types import InputQuantity, Quantity, Ratio

__all__ = [
    "get_engine",
    "get_session",
    "get_session_factory",
    "create_tables",
    "unit_of_work",
    "Base",
    "TrackedBase",
    "UUIDString",
    "UUID",
    "Quantity",
    "InputQuantity",
    "Ratio",
]
