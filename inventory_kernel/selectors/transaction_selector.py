"""
Module: inventory_kernel.selectors.transaction_selector
Responsibility: Read-only queries over the transaction log: fetch by id,
    filtered listing with item code/name resolved for display, and the
    per-(item, warehouse) stock card.
Architecture position: Kernel > Selectors.  ``transaction_query()`` is
    shared with TransactionRecordStore so both sides filter identically.

Invariants enforced:
    - Listing order is newest first: transaction_date DESC, created_at
      DESC, id DESC.  created_at breaks ties among same-date transactions.
    - The stock card derives every movement from the stored lines (ratio
      snapshot) through the same effect computation the ledger uses, so its
      final balance equals the stock row when the ledger is consistent.

Failure modes:
    - TransactionNotFoundError from get().
"""

from datetime import date
from typing import Iterable, Iterator
from uuid import UUID

from sqlalchemy import Select, or_, select

from inventory_kernel.db.types import ZERO, round_quantity
from inventory_kernel.domain.dtos import StockMovement, TransactionFilter, TransactionInfo
from inventory_kernel.domain.effects import EffectLine, compute_effects
from inventory_kernel.domain.values import TransactionType
from inventory_kernel.exceptions import TransactionNotFoundError
from inventory_kernel.models.item import Item
from inventory_kernel.models.transaction import InventoryTransaction, TransactionLine
from inventory_kernel.selectors.base import BaseSelector


def transaction_query(transaction_filter: TransactionFilter | None = None) -> Select:
    """SELECT of transaction headers matching ``transaction_filter``, newest first."""
    stmt = select(InventoryTransaction)
    f = transaction_filter or TransactionFilter()

    if f.date_from is not None:
        stmt = stmt.where(InventoryTransaction.transaction_date >= f.date_from)
    if f.date_to is not None:
        stmt = stmt.where(InventoryTransaction.transaction_date <= f.date_to)
    if f.warehouse_id is not None:
        stmt = stmt.where(
            or_(
                InventoryTransaction.source_warehouse_id == f.warehouse_id,
                InventoryTransaction.target_warehouse_id == f.warehouse_id,
            )
        )
    if f.transaction_type is not None:
        stmt = stmt.where(
            InventoryTransaction.transaction_type == TransactionType(f.transaction_type).value
        )

    return stmt.order_by(
        InventoryTransaction.transaction_date.desc(),
        InventoryTransaction.created_at.desc(),
        InventoryTransaction.id.desc(),
    )


class TransactionSelector(BaseSelector[InventoryTransaction]):
    """Read-side queries over ``transactions`` / ``transaction_items``."""

    def _item_labels(self, item_ids: Iterable[UUID]) -> dict[UUID, tuple[str, str]]:
        ids = set(item_ids)
        if not ids:
            return {}
        rows = self.session.execute(
            select(Item.id, Item.code, Item.name).where(Item.id.in_(ids))
        ).all()
        return {row.id: (row.code, row.name) for row in rows}

    def get(self, transaction_id: UUID) -> TransactionInfo:
        """
        Raises:
            TransactionNotFoundError: If no such transaction exists.
        """
        transaction = self.session.get(InventoryTransaction, transaction_id)
        if transaction is None:
            raise TransactionNotFoundError(str(transaction_id))
        labels = self._item_labels(line.item_id for line in transaction.lines)
        return TransactionInfo.from_model(transaction, labels)

    def find_by_reference(self, reference_no: str) -> TransactionInfo | None:
        transaction = self.session.execute(
            select(InventoryTransaction).where(InventoryTransaction.reference_no == reference_no)
        ).scalar_one_or_none()
        if transaction is None:
            return None
        labels = self._item_labels(line.item_id for line in transaction.lines)
        return TransactionInfo.from_model(transaction, labels)

    def list_transactions(
        self,
        transaction_filter: TransactionFilter | None = None,
    ) -> Iterator[TransactionInfo]:
        """
        Transactions matching the filter, newest first.

        Each line carries its item's code and name.  Results are produced
        lazily; item labels are fetched once for the whole result.
        """
        transactions = self.session.execute(
            transaction_query(transaction_filter)
        ).scalars().all()
        labels = self._item_labels(
            line.item_id for transaction in transactions for line in transaction.lines
        )
        for transaction in transactions:
            yield TransactionInfo.from_model(transaction, labels)

    def stock_movements(
        self,
        item_id: UUID,
        warehouse_id: UUID,
        date_from: date | None = None,
        date_to: date | None = None,
    ) -> list[StockMovement]:
        """
        Stock card for one item at one warehouse, oldest first.

        The running balance starts at zero with the earliest transaction;
        rows before ``date_from`` are not returned but still count toward
        the balance of the rows that are.
        """
        stmt = (
            select(InventoryTransaction)
            .where(
                InventoryTransaction.lines.any(TransactionLine.item_id == item_id),
                or_(
                    InventoryTransaction.source_warehouse_id == warehouse_id,
                    InventoryTransaction.target_warehouse_id == warehouse_id,
                ),
            )
            .order_by(
                InventoryTransaction.transaction_date,
                InventoryTransaction.created_at,
                InventoryTransaction.id,
            )
        )
        if date_to is not None:
            stmt = stmt.where(InventoryTransaction.transaction_date <= date_to)

        balance = round_quantity(ZERO)
        movements: list[StockMovement] = []
        for transaction in self.session.execute(stmt).scalars():
            deltas = compute_effects(
                transaction_type=TransactionType(transaction.transaction_type),
                source_warehouse_id=transaction.source_warehouse_id,
                target_warehouse_id=transaction.target_warehouse_id,
                lines=[
                    EffectLine(item_id=line.item_id, qty=line.qty, ratio=line.ratio)
                    for line in transaction.lines
                    if line.item_id == item_id
                ],
            )
            change = sum(
                (d.delta for d in deltas if d.warehouse_id == warehouse_id),
                ZERO,
            )
            balance += change

            if date_from is not None and transaction.transaction_date < date_from:
                continue
            movements.append(
                StockMovement(
                    transaction_id=transaction.id,
                    reference_no=transaction.reference_no,
                    transaction_type=TransactionType(transaction.transaction_type),
                    transaction_date=transaction.transaction_date,
                    qty_in=change if change > ZERO else round_quantity(ZERO),
                    qty_out=-change if change < ZERO else round_quantity(ZERO),
                    balance=balance,
                    created_at=transaction.created_at,
                )
            )
        return movements
