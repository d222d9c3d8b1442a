"""
Module: inventory_kernel.selectors.base
Responsibility: Abstract base class for all read-only query selectors.
    Selectors are the "Q" side of the CQRS-lite split: display queries over
    stock and transactions with no mutation capability.
Architecture position: Kernel > Selectors.  May import from db/, models/
    and domain/.  MUST NOT import from services/ or outer layers.

Invariants enforced:
    - Read-only access: selectors MUST NOT call session.add(),
      session.delete(), session.commit(), or session.flush().
    - Non-locking: no selector issues FOR UPDATE.  Results may be stale
      under concurrent writers, which is acceptable for display and never
      used for sufficiency decisions.
    - DTO return convention: selectors return frozen dataclasses, not ORM
      instances.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from inventory_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseSelector(ABC, Generic[ModelType]):
    """
    Abstract base class for all selectors.

    Contract:
        Selectors accept a Session from the caller, perform read-only
        queries, and return DTOs or computed results.
    """

    def __init__(self, session: Session):
        self.session = session
