"""
DTOs -- Pure domain data transfer objects.

Responsibility:
    Defines the typed request objects the lifecycle coordinator accepts
    (TransactionRequest, TransactionLineRequest) and the immutable read-side
    records selectors return (TransactionInfo, StockInfo, StockMovement, ...).

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    from_model() class methods exist as boundary converters but are only
    invoked from the service and selector layers.

Invariants enforced:
    - Requests are validated (TransactionRequest.validate) before any lock
      is taken or any row is written.
    - Read DTOs are frozen; selectors never hand out ORM instances.

Failure modes:
    - ValidationError from TransactionRequest.validate().

Data flow:
    TransactionRequest -> (coordinator) -> InventoryTransaction ORM
        -> TransactionInfo
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Mapping
from uuid import UUID

from inventory_kernel.db.types import (
    LINE_NOTE_LENGTH,
    REFERENCE_NO_LENGTH,
    UNIT_NAME_LENGTH,
    ZERO,
    fits_input_precision,
)
from inventory_kernel.domain.values import TransactionType
from inventory_kernel.exceptions import ValidationError

if TYPE_CHECKING:
    from inventory_kernel.models.transaction import (
        InventoryTransaction as InventoryTransactionModel,
    )


# =============================================================================
# Requests
# =============================================================================


@dataclass(frozen=True)
class TransactionLineRequest:
    """
    One requested movement: ``qty`` of ``item_id`` expressed in ``unit``.

    The ratio is not part of the request; it is resolved from the item's
    conversion table when the line is written.
    """

    item_id: UUID
    qty: Decimal
    unit: str
    note: str | None = None


@dataclass(frozen=True)
class TransactionRequest:
    """
    Header and lines for create or update.

    Contract:
        ``validate()`` must pass before the coordinator touches the
        database.  On update the request's ``transaction_type`` must equal
        the stored type.

    Guarantees:
        - ``lines`` is always a tuple (lists are converted on construction).
    """

    reference_no: str
    transaction_type: TransactionType
    transaction_date: date
    source_warehouse_id: UUID | None
    lines: tuple[TransactionLineRequest, ...]
    target_warehouse_id: UUID | None = None
    partner_id: UUID | None = None
    delivery_order_no: str | None = None
    notes: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "lines", tuple(self.lines))

    def validate(self) -> None:
        """
        Reject malformed requests.

        Raises:
            ValidationError: naming the first offending field.
        """
        if not isinstance(self.transaction_type, TransactionType):
            raise ValidationError("transaction_type", f"unknown type {self.transaction_type!r}")

        if not self.reference_no or not self.reference_no.strip():
            raise ValidationError("reference_no", "reference number is required")
        if len(self.reference_no) > REFERENCE_NO_LENGTH:
            raise ValidationError(
                "reference_no", f"longer than {REFERENCE_NO_LENGTH} characters"
            )

        if self.transaction_date is None:
            raise ValidationError("transaction_date", "date is required")

        if self.source_warehouse_id is None:
            raise ValidationError("source_warehouse_id", "source warehouse is required")

        if self.transaction_type.requires_target:
            if self.target_warehouse_id is None:
                raise ValidationError(
                    "target_warehouse_id", "TRANSFER requires a target warehouse"
                )
            if self.target_warehouse_id == self.source_warehouse_id:
                raise ValidationError(
                    "target_warehouse_id", "target must differ from source"
                )
        elif self.target_warehouse_id is not None:
            raise ValidationError(
                "target_warehouse_id",
                f"{self.transaction_type.value} does not take a target warehouse",
            )

        if (
            self.delivery_order_no is not None
            and len(self.delivery_order_no) > REFERENCE_NO_LENGTH
        ):
            raise ValidationError(
                "delivery_order_no", f"longer than {REFERENCE_NO_LENGTH} characters"
            )

        if not self.lines:
            raise ValidationError("lines", "at least one line is required")

        for index, line in enumerate(self.lines):
            field = f"lines[{index}]"
            if line.item_id is None:
                raise ValidationError(f"{field}.item_id", "item is required")
            if not isinstance(line.qty, Decimal):
                raise ValidationError(f"{field}.qty", "quantity must be a Decimal")
            if not line.qty.is_finite() or line.qty <= ZERO:
                raise ValidationError(f"{field}.qty", "quantity must be positive")
            if not fits_input_precision(line.qty):
                raise ValidationError(f"{field}.qty", "too many fractional digits")
            if not line.unit or not line.unit.strip():
                raise ValidationError(f"{field}.unit", "unit is required")
            if len(line.unit) > UNIT_NAME_LENGTH:
                raise ValidationError(
                    f"{field}.unit", f"longer than {UNIT_NAME_LENGTH} characters"
                )
            if line.note is not None and len(line.note) > LINE_NOTE_LENGTH:
                raise ValidationError(
                    f"{field}.note", f"longer than {LINE_NOTE_LENGTH} characters"
                )


# =============================================================================
# Read side
# =============================================================================


@dataclass(frozen=True)
class TransactionLineInfo:
    line_no: int
    item_id: UUID
    qty: Decimal
    unit: str
    ratio: Decimal
    base_qty: Decimal
    note: str | None = None
    item_code: str | None = None
    item_name: str | None = None


@dataclass(frozen=True)
class TransactionInfo:
    """
    A committed transaction, as seen by readers.

    ``lines`` carry the item code and name when the selector joined them.
    """

    id: UUID
    reference_no: str
    transaction_type: TransactionType
    transaction_date: date
    source_warehouse_id: UUID
    target_warehouse_id: UUID | None
    lines: tuple[TransactionLineInfo, ...]
    partner_id: UUID | None = None
    delivery_order_no: str | None = None
    notes: str | None = None
    created_at: datetime | None = None
    created_by_id: UUID | None = None

    @classmethod
    def from_model(
        cls,
        model: InventoryTransactionModel,
        item_labels: Mapping[UUID, tuple[str, str]] | None = None,
    ) -> TransactionInfo:
        """
        Convert an InventoryTransaction ORM model.

        Args:
            model: the header, with its lines loaded.
            item_labels: optional item_id -> (code, name) for display.
        """
        labels = item_labels or {}
        lines = tuple(
            TransactionLineInfo(
                line_no=line.line_no,
                item_id=line.item_id,
                qty=line.qty,
                unit=line.unit,
                ratio=line.ratio,
                base_qty=line.base_qty,
                note=line.note,
                item_code=labels.get(line.item_id, (None, None))[0],
                item_name=labels.get(line.item_id, (None, None))[1],
            )
            for line in sorted(model.lines, key=lambda x: x.line_no)
        )
        return cls(
            id=model.id,
            reference_no=model.reference_no,
            transaction_type=TransactionType(model.transaction_type),
            transaction_date=model.transaction_date,
            source_warehouse_id=model.source_warehouse_id,
            target_warehouse_id=model.target_warehouse_id,
            lines=lines,
            partner_id=model.partner_id,
            delivery_order_no=model.delivery_order_no,
            notes=model.notes,
            created_at=model.created_at,
            created_by_id=model.created_by_id,
        )


@dataclass(frozen=True)
class TransactionFilter:
    """
    Predicates for listing transactions.  All optional; combined with AND.

    ``warehouse_id`` matches either the source or the target warehouse.
    Date bounds are inclusive.
    """

    date_from: date | None = None
    date_to: date | None = None
    warehouse_id: UUID | None = None
    transaction_type: TransactionType | None = None


@dataclass(frozen=True)
class StockInfo:
    """Quantity on hand for one (item, warehouse), in base units."""

    item_id: UUID
    warehouse_id: UUID
    quantity: Decimal
    item_code: str | None = None
    item_name: str | None = None
    base_unit: str | None = None
    warehouse_name: str | None = None
    min_stock: Decimal | None = None
    last_updated: datetime | None = None


@dataclass(frozen=True)
class StockMovement:
    """
    One row of a stock card.

    ``qty_in`` / ``qty_out`` are base units moved by this transaction at the
    card's warehouse; ``balance`` is the running total after it.
    """

    transaction_id: UUID
    reference_no: str
    transaction_type: TransactionType
    transaction_date: date
    qty_in: Decimal
    qty_out: Decimal
    balance: Decimal
    created_at: datetime | None = None


@dataclass(frozen=True)
class ConservationDiscrepancy:
    """A stock row that disagrees with the replayed transaction log."""

    item_id: UUID
    warehouse_id: UUID
    expected: Decimal
    actual: Decimal

    @property
    def difference(self) -> Decimal:
        return self.actual - self.expected
