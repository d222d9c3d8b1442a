"""
BaseService -- abstract base for all kernel services.

Responsibility:
    Provides the common constructor and session-handling contract for
    every write-side service.  Services receive a SQLAlchemy ``Session``
    that they use via ``session.flush()`` -- never ``session.commit()``.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.

Invariants enforced:
    - Transaction boundaries: services flush within the caller's unit of
      work and never commit or roll back themselves.  The lifecycle
      coordinator (through db.engine.unit_of_work) owns commit/rollback.
    - Lock waits that exceed the bound surface as LockTimeoutError at the
      statement that waited, via ``_lock_guard()``.

Failure modes:
    - If a subclass calls ``session.commit()``, a failing later step can no
      longer roll back earlier stock deltas, and the atomicity of
      create/update/delete is lost.
"""

from abc import ABC
from contextlib import contextmanager
from typing import Generator, Generic, TypeVar

from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm import Session

from inventory_kernel.db.base import Base
from inventory_kernel.db.engine import DEFAULT_LOCK_TIMEOUT_MS, is_lock_timeout
from inventory_kernel.exceptions import LockTimeoutError

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(ABC, Generic[ModelType]):
    """
    Abstract base class for all kernel services.

    Contract:
        Accepts a SQLAlchemy ``Session`` from the caller and uses
        ``session.flush()`` to persist changes within the active
        transaction.

    Non-goals:
        - Does NOT manage transaction lifecycle (commit/rollback).
        - Does NOT provide display queries -- those belong in
          ``inventory_kernel/selectors/``.
    """

    def __init__(self, session: Session, lock_timeout_ms: int = DEFAULT_LOCK_TIMEOUT_MS):
        """
        Initialize the service.

        Args:
            session: SQLAlchemy session for database operations.
            lock_timeout_ms: Bound reported by LockTimeoutError.  The bound
                itself is applied to the session by unit_of_work().
        """
        self.session = session
        self.lock_timeout_ms = lock_timeout_ms

    @contextmanager
    def _lock_guard(self, resource: str) -> Generator[None, None, None]:
        """Translate a backend lock-wait failure into LockTimeoutError."""
        try:
            yield
        except DBAPIError as exc:
            if is_lock_timeout(exc):
                raise LockTimeoutError(resource, self.lock_timeout_ms) from exc
            raise
