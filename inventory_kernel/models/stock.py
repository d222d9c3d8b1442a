"""
Module: inventory_kernel.models.stock
Responsibility: ORM persistence for the stock ledger -- the current quantity
    of each item at each warehouse, in base units.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - Exactly one row per (item_id, warehouse_id): UNIQUE constraint
      uq_stock_item_warehouse.  The ledger creates rows with
      INSERT ... ON CONFLICT DO NOTHING so concurrent first touches never
      fail.
    - Rows are created lazily on first effect and never deleted, even at
      zero.  Absence of a row means quantity 0.
    - quantity is mutated ONLY by StockLedgerService.apply_delta(), inside
      a locked read-modify-write.

Audit relevance:
    At every quiescent point, quantity equals the sum of the applied
    effects of all committed transactions on this (item, warehouse).
    ReconciliationSelector verifies this by replay.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import DateTime, ForeignKey, Index, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from inventory_kernel.db.base import Base, UUIDString
from inventory_kernel.db.types import Quantity


class StockEntry(Base):
    """Quantity on hand for one (item, warehouse) pair."""

    __tablename__ = "stock"

    __table_args__ = (
        UniqueConstraint("item_id", "warehouse_id", name="uq_stock_item_warehouse"),
        Index("idx_stock_warehouse", "warehouse_id"),
    )

    item_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("items.id"),
        nullable=False,
    )
    warehouse_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("warehouses.id"),
        nullable=False,
    )
    quantity: Mapped[Decimal] = mapped_column(
        Quantity,
        nullable=False,
        default=Decimal("0"),
    )
    last_updated: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<StockEntry item={self.item_id} wh={self.warehouse_id} qty={self.quantity}>"
