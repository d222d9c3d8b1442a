"""
TransactionLifecycleCoordinator -- create / update / delete as atomic units.

Responsibility:
    The only entry point that changes committed transactions.  Each
    operation validates its request, opens ONE unit of work, and drives the
    record store and the effect engine in a fixed order:

        create:  validate -> resolve units -> insert -> APPLY
        update:  validate -> lock header -> check type -> resolve units
                 -> lock stock rows -> REVERT old -> replace -> APPLY new
        delete:  lock header -> REVERT -> remove

Architecture position:
    Kernel > Services -- orchestration.  Called by InventoryService (the
    external interface) and TransactionImporter.

Invariants enforced:
    - Atomicity: every operation commits all of its stock deltas and record
      changes together, or nothing (db.engine.unit_of_work).
    - Validation happens before any row is locked or written.
    - Update applies the new lines with the ORIGINAL type; a request that
      changes the type is rejected with TransactionTypeImmutableError.
    - The full revert of the stored lines completes before the header or
      lines are touched.
    - The header row is locked FOR UPDATE before update/delete compute their
      revert, so two concurrent updates/deletes of one id serialize.
    - Interactive entry resolves units strictly (UnknownUnitError);
      ``lenient_units=True`` (bulk import only) falls back to ratio 1.

Failure modes:
    - ValidationError, ItemNotFoundError, WarehouseNotFoundError,
      UnknownUnitError: before any lock.
    - TransactionNotFoundError, TransactionTypeImmutableError,
      DuplicateReferenceError, InsufficientStockError, LockTimeoutError:
      the unit of work rolls back in full and the error propagates.

Audit relevance:
    Each committed operation logs ``transaction_created`` /
    ``transaction_updated`` / ``transaction_deleted`` with the operation and
    transaction id bound in LogContext.
"""

from typing import Callable
from uuid import UUID

from sqlalchemy.orm import Session

from inventory_kernel.db.engine import DEFAULT_LOCK_TIMEOUT_MS, unit_of_work
from inventory_kernel.db.types import ZERO
from inventory_kernel.domain.clock import Clock, SystemClock
from inventory_kernel.domain.dtos import TransactionRequest
from inventory_kernel.domain.effects import EffectLine, compute_effects, line_base_qty
from inventory_kernel.domain.units import (
    ItemUnits,
    resolve_base_qty,
    resolve_base_qty_lenient,
)
from inventory_kernel.domain.values import TransactionType
from inventory_kernel.exceptions import TransactionTypeImmutableError, ValidationError
from inventory_kernel.logging_config import LogContext, get_logger
from inventory_kernel.services.effect_engine import TransactionEffectEngine
from inventory_kernel.services.master_data_service import MasterDataService
from inventory_kernel.services.transaction_store import LineRecord, TransactionRecordStore

logger = get_logger("services.lifecycle")


class TransactionLifecycleCoordinator:
    """
    Orchestrates transaction create / update / delete.

    Contract:
        Owns its units of work: callers pass a session factory, never a
        session.  Each public method is one database transaction.

    Usage:
        coordinator = TransactionLifecycleCoordinator(get_session_factory())
        tx_id = coordinator.create(request, actor_id=user_id)
        coordinator.update(tx_id, new_request)
        coordinator.delete(tx_id)
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        clock: Clock | None = None,
        lock_timeout_ms: int = DEFAULT_LOCK_TIMEOUT_MS,
        allow_negative_revert: bool = False,
    ):
        self._session_factory = session_factory
        self._clock = clock or SystemClock()
        self._lock_timeout_ms = lock_timeout_ms
        self._allow_negative_revert = allow_negative_revert

    # =========================================================================
    # Operations
    # =========================================================================

    def create(
        self,
        request: TransactionRequest,
        actor_id: UUID | None = None,
        lenient_units: bool = False,
    ) -> UUID:
        """
        Record a new transaction and apply its stock effect.

        Returns:
            The new transaction id.
        """
        with LogContext.bind(
            operation="create", actor_id=actor_id, reference_no=request.reference_no
        ):
            self._validate(request)

            with unit_of_work(self._session_factory, self._lock_timeout_ms) as session:
                lines = self._prepare_lines(session, request, lenient_units)
                store = TransactionRecordStore(session, self._lock_timeout_ms)
                transaction = store.insert(
                    request,
                    lines,
                    created_at=self._clock.now(),
                    actor_id=actor_id,
                )
                with LogContext.bind(transaction_id=transaction.id):
                    self._engine(session).apply(transaction)
                transaction_id = transaction.id

            logger.info(
                "transaction_created",
                extra={
                    "transaction_id": str(transaction_id),
                    "reference_no": request.reference_no,
                    "transaction_type": request.transaction_type.value,
                    "line_count": len(request.lines),
                },
            )
            return transaction_id

    def update(
        self,
        transaction_id: UUID,
        request: TransactionRequest,
        actor_id: UUID | None = None,
    ) -> None:
        """
        Replace header and lines, moving stock from the old effect to the
        new one.

        Raises:
            TransactionNotFoundError: No such transaction.
            TransactionTypeImmutableError: The request changes the type.
        """
        with LogContext.bind(
            operation="update", actor_id=actor_id, transaction_id=transaction_id
        ):
            self._validate(request)

            with unit_of_work(self._session_factory, self._lock_timeout_ms) as session:
                store = TransactionRecordStore(session, self._lock_timeout_ms)
                transaction = store.get_by_id(transaction_id, for_update=True)

                original_type = TransactionType(transaction.transaction_type)
                if request.transaction_type != original_type:
                    raise TransactionTypeImmutableError(
                        transaction_id=str(transaction_id),
                        current_type=original_type.value,
                        requested_type=request.transaction_type.value,
                    )

                lines = self._prepare_lines(session, request, lenient_units=False)
                engine = self._engine(session)
                engine.lock_rows(
                    engine.effects_of(transaction, transaction_type=original_type),
                    compute_effects(
                        transaction_type=original_type,
                        source_warehouse_id=request.source_warehouse_id,
                        target_warehouse_id=request.target_warehouse_id,
                        lines=[
                            EffectLine(item_id=line.item_id, qty=line.qty, ratio=line.ratio)
                            for line in lines
                        ],
                    ),
                )

                engine.revert(transaction, original_type)
                store.replace(
                    transaction,
                    request,
                    lines,
                    updated_at=self._clock.now(),
                    actor_id=actor_id,
                )
                engine.apply(transaction, transaction_type=original_type)

            logger.info(
                "transaction_updated",
                extra={
                    "transaction_id": str(transaction_id),
                    "reference_no": request.reference_no,
                    "line_count": len(request.lines),
                },
            )

    def delete(self, transaction_id: UUID, actor_id: UUID | None = None) -> None:
        """
        Undo the stock effect of a transaction and remove it.

        Raises:
            TransactionNotFoundError: No such transaction.
            InsufficientStockError: Undoing the effect would drive a stock
                row negative (later movements consumed the stock).  Delete
                in reverse chronological order instead.
        """
        with LogContext.bind(
            operation="delete", actor_id=actor_id, transaction_id=transaction_id
        ):
            with unit_of_work(self._session_factory, self._lock_timeout_ms) as session:
                store = TransactionRecordStore(session, self._lock_timeout_ms)
                transaction = store.get_by_id(transaction_id, for_update=True)
                reference_no = transaction.reference_no

                self._engine(session).revert(transaction)
                store.remove(transaction)

            logger.info(
                "transaction_deleted",
                extra={
                    "transaction_id": str(transaction_id),
                    "reference_no": reference_no,
                },
            )

    # =========================================================================
    # Helpers
    # =========================================================================

    def _engine(self, session: Session) -> TransactionEffectEngine:
        return TransactionEffectEngine(
            session,
            clock=self._clock,
            lock_timeout_ms=self._lock_timeout_ms,
            allow_negative_revert=self._allow_negative_revert,
        )

    @staticmethod
    def _validate(request: TransactionRequest) -> None:
        try:
            request.validate()
        except ValidationError as exc:
            logger.info(
                "transaction_rejected",
                extra={"field": exc.field, "reason": exc.reason},
            )
            raise

    def _prepare_lines(
        self,
        session: Session,
        request: TransactionRequest,
        lenient_units: bool,
    ) -> list[LineRecord]:
        """
        Check master data and resolve every line's unit to a ratio snapshot.

        Raises:
            WarehouseNotFoundError, ItemNotFoundError, UnknownUnitError,
            ValidationError (base quantity rounds to zero).
        """
        master_data = MasterDataService(session, self._lock_timeout_ms)
        master_data.require_warehouse(request.source_warehouse_id)
        if request.target_warehouse_id is not None:
            master_data.require_warehouse(request.target_warehouse_id)

        units_by_item: dict[UUID, ItemUnits] = {}
        records = []
        for index, line in enumerate(request.lines):
            units = units_by_item.get(line.item_id)
            if units is None:
                units = master_data.get_item_units(line.item_id)
                units_by_item[line.item_id] = units

            unit = line.unit.strip()
            if lenient_units:
                resolved, fell_back = resolve_base_qty_lenient(units, line.qty, unit)
                if fell_back:
                    logger.warning(
                        "import_unknown_unit_fallback",
                        extra={
                            "reference_no": request.reference_no,
                            "item_id": str(line.item_id),
                            "unit": unit,
                            "base_unit": units.base_unit,
                        },
                    )
            else:
                resolved = resolve_base_qty(units, line.qty, unit)

            if line_base_qty(resolved.qty, resolved.ratio) == ZERO:
                raise ValidationError(
                    f"lines[{index}].qty", "base quantity rounds to zero"
                )

            records.append(
                LineRecord(
                    item_id=line.item_id,
                    qty=resolved.qty,
                    unit=unit,
                    ratio=resolved.ratio,
                    note=line.note,
                )
            )
        return records
