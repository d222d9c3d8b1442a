"""
Module: inventory_kernel.models.transaction
Responsibility: ORM persistence for committed inventory transactions
    (header) and their lines -- the transaction log the stock ledger must
    always agree with.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - reference_no is unique across all transactions.
    - Lines belong to exactly one header and are removed with it through
      the ``delete-orphan`` cascade, inside the same unit of work.
    - Each line snapshots ``unit``, ``ratio`` (the effective multiplier to
      the base unit at entry time) and ``base_qty``.  The ratio is never
      re-derived from the item's live conversions; lines are never
      UPDATEd (db/immutability.py).
    - created_at orders transactions that share a calendar date.

Failure modes:
    - IntegrityError on duplicate reference_no (translated to
      DuplicateReferenceError by TransactionRecordStore).
    - ImmutabilityViolationError on any UPDATE of a line.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Date, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from inventory_kernel.db.base import Base, TrackedBase, UUIDString
from inventory_kernel.db.types import (
    LINE_NOTE_LENGTH,
    REFERENCE_NO_LENGTH,
    UNIT_NAME_LENGTH,
    InputQuantity,
    Quantity,
    Ratio,
)


class InventoryTransaction(TrackedBase):
    """
    Transaction header.

    ``transaction_type`` holds a TransactionType value (IN, OUT, TRANSFER,
    ADJUSTMENT).  It is fixed at creation.
    """

    __tablename__ = "transactions"

    __table_args__ = (
        Index("idx_transaction_date", "transaction_date", "created_at"),
        Index("idx_transaction_source", "source_warehouse_id"),
        Index("idx_transaction_target", "target_warehouse_id"),
        Index("idx_transaction_type", "transaction_type"),
    )

    reference_no: Mapped[str] = mapped_column(
        String(REFERENCE_NO_LENGTH), nullable=False, unique=True
    )
    transaction_type: Mapped[str] = mapped_column(String(20), nullable=False)
    transaction_date: Mapped[date] = mapped_column(Date, nullable=False)

    source_warehouse_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("warehouses.id"),
        nullable=False,
    )
    target_warehouse_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("warehouses.id"),
        nullable=True,
    )

    # Supplier / customer reference (partner master data lives outside the kernel)
    partner_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    delivery_order_no: Mapped[str | None] = mapped_column(
        String(REFERENCE_NO_LENGTH), nullable=True
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    lines: Mapped[list["TransactionLine"]] = relationship(
        back_populates="transaction",
        cascade="all, delete-orphan",
        order_by="TransactionLine.line_no",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<InventoryTransaction {self.reference_no} {self.transaction_type}>"


class TransactionLine(Base):
    """
    One item movement within a transaction.

    ``qty`` is in ``unit``; ``ratio`` converts it to base units.
    """

    __tablename__ = "transaction_items"

    __table_args__ = (
        Index("idx_transaction_line_tx", "transaction_id"),
        Index("idx_transaction_line_item", "item_id"),
    )

    transaction_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("transactions.id", ondelete="CASCADE"),
        nullable=False,
    )
    line_no: Mapped[int] = mapped_column(Integer, nullable=False)
    item_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("items.id"),
        nullable=False,
    )
    qty: Mapped[Decimal] = mapped_column(InputQuantity, nullable=False)
    unit: Mapped[str] = mapped_column(String(UNIT_NAME_LENGTH), nullable=False)
    ratio: Mapped[Decimal] = mapped_column(Ratio, nullable=False)
    # Display snapshot: round(qty * ratio) at entry time
    base_qty: Mapped[Decimal] = mapped_column(Quantity, nullable=False)
    note: Mapped[str | None] = mapped_column(String(LINE_NOTE_LENGTH), nullable=True)

    transaction: Mapped[InventoryTransaction] = relationship(back_populates="lines")

    def __repr__(self) -> str:
        return f"<TransactionLine {self.item_id} {self.qty} {self.unit} x{self.ratio}>"
