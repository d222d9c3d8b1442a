"""
Inventory Kernel - stock-ledger mutation engine

A transactional core for warehouse inventory with:
- Per-(item, warehouse) stock rows mutated under pessimistic row locks
- Snapshotted unit-conversion ratios on every committed line
- Exactly invertible transaction effects (apply / revert)
- Atomic create / update / delete through an explicit unit of work
"""

__version__ = "0.1.0"
