"""
Clock -- injectable time source for the stock ledger.

Responsibility:
    Services never call ``datetime.now()``.  Transaction ``created_at``
    (the tie-breaker among same-date transactions on listings and the stock
    card), ``updated_at`` and ``stock.last_updated`` all come from the
    clock the lifecycle coordinator was built with.

Architecture position:
    Kernel > Domain.  SystemClock is the one I/O boundary for time.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone

DEFAULT_TEST_EPOCH = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class Clock(ABC):
    """Source of timezone-aware UTC timestamps."""

    @abstractmethod
    def now(self) -> datetime:
        ...


class SystemClock(Clock):
    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Test clock that only moves when told to.

    Successive transactions created without a ``tick()`` in between share
    one ``created_at``; listings then fall back to insertion order.
    """

    def __init__(self, start: datetime | None = None):
        self._current = start or DEFAULT_TEST_EPOCH

    def now(self) -> datetime:
        return self._current

    def advance(self, seconds: float = 1) -> None:
        self._current += timedelta(seconds=seconds)

    def tick(self) -> datetime:
        """Advance one second and return the new time."""
        self.advance(1)
        return self._current
