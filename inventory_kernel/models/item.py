"""
Module: inventory_kernel.models.item
Responsibility: ORM persistence for item master data and each item's unit
    conversion table.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - (item_id, unit_name) is unique: conversion names are unique per item.
    - The base unit is never listed as a conversion and ratios are positive;
      both are checked by MasterDataService before rows are written.

Audit relevance:
    Conversions are consulted only when a line is entered.  Committed lines
    carry their own ratio snapshot, so editing a conversion here never
    changes the stock impact of history.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from inventory_kernel.db.base import Base, TrackedBase, UUIDString
from inventory_kernel.db.types import Quantity, Ratio


class Item(TrackedBase):
    """
    Stock-keeping item.

    Stock for an item is always held in ``base_unit``.
    """

    __tablename__ = "items"

    code: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(150), nullable=False)
    category: Mapped[str | None] = mapped_column(String(50), nullable=True)
    base_unit: Mapped[str] = mapped_column(String(20), nullable=False)

    # Low-stock threshold in base units
    min_stock: Mapped[Decimal] = mapped_column(
        Quantity, nullable=False, default=Decimal("0")
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    units: Mapped[list["ItemUnit"]] = relationship(
        back_populates="item",
        cascade="all, delete-orphan",
        order_by="ItemUnit.position",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<Item {self.code} base={self.base_unit}>"


class ItemUnit(Base):
    """One alternate unit of an item and how it maps to the base unit."""

    __tablename__ = "item_units"

    __table_args__ = (
        UniqueConstraint("item_id", "unit_name", name="uq_item_unit_name"),
    )

    item_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("items.id", ondelete="CASCADE"),
        nullable=False,
    )
    unit_name: Mapped[str] = mapped_column(String(20), nullable=False)
    conversion_ratio: Mapped[Decimal] = mapped_column(Ratio, nullable=False)
    # "*" multiplies into base units, "/" divides
    operator: Mapped[str] = mapped_column(String(1), nullable=False, default="*")
    # Preserves the entered order of the conversion list
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    item: Mapped[Item] = relationship(back_populates="units")

    def __repr__(self) -> str:
        return f"<ItemUnit {self.unit_name} {self.operator}{self.conversion_ratio}>"
