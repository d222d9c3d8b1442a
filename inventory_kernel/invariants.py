"""
Kernel Invariants Contract.

These invariants are structural law for the stock ledger.  No configuration
switch may turn them off.

This module exists solely to declare them explicitly.  Enforcement is
distributed across the effect engine, the stock ledger service, the
lifecycle coordinator, the unit of work and the ORM immutability listeners.
"""

from enum import Enum, unique


@unique
class KernelInvariant(str, Enum):
    """Non-configurable invariants enforced by the kernel."""

    CONSERVATION = "conservation"
    """Every stock row equals the sum of the applied effects of all
    committed transactions on that (item, warehouse).  Checked by
    ReconciliationSelector.verify_conservation()."""

    RATIO_SNAPSHOT = "ratio_snapshot"
    """A committed line's ratio is the multiplier resolved at entry time.
    Reversal reads the stored ratio, never the item's live conversions."""

    ATOMICITY = "atomicity"
    """Create / update / delete either commit every stock delta and record
    change together or none of them.  Enforced by unit_of_work()."""

    LOCKED_DECREMENT = "locked_decrement"
    """Every sufficiency decision is made on a row held FOR UPDATE, never
    on a prior unlocked read.  Enforced by StockLedgerService."""

    TYPE_IMMUTABILITY = "type_immutability"
    """A transaction's type is fixed at creation."""

    LINE_IMMUTABILITY = "line_immutability"
    """Committed lines are never UPDATEd; edits replace them.  Enforced by
    ORM listeners in inventory_kernel.db.immutability."""


ALL_KERNEL_INVARIANTS: frozenset[KernelInvariant] = frozenset(KernelInvariant)

# The kernel package may not import from these packages.
FORBIDDEN_KERNEL_IMPORTS: tuple[str, ...] = (
    "inventory_config",
    "scripts",
)
