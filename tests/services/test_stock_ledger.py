"""
StockLedgerService -- locked read-modify-write on stock rows.

Verifies:
- First touch creates the row at zero, then applies the delta
- Decrements that would go negative are rejected and change nothing
- Increments never need sufficiency
- Rows are kept at zero, never deleted
"""

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from inventory_kernel.db.engine import unit_of_work
from inventory_kernel.exceptions import InsufficientStockError
from inventory_kernel.models.stock import StockEntry
from inventory_kernel.services.stock_ledger_service import StockLedgerService


def _apply(session_factory, clock, *deltas):
    with unit_of_work(session_factory) as session:
        ledger = StockLedgerService(session, clock=clock)
        return [
            ledger.apply_delta(warehouse_id, item_id, Decimal(delta), expect_sufficient)
            for warehouse_id, item_id, delta, expect_sufficient in deltas
        ]


def _naive_utc(value: datetime) -> datetime:
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _qty(session_factory, item_id, warehouse_id):
    session = session_factory()
    try:
        return StockLedgerService(session).get_qty(item_id, warehouse_id)
    finally:
        session.close()


class TestApplyDelta:
    def test_first_touch_creates_row(self, session_factory, master_data, deterministic_clock):
        md = master_data
        result = _apply(session_factory, deterministic_clock, (md.main, md.pcs_item, "12", True))
        assert result == [Decimal("12.000")]
        assert _qty(session_factory, md.pcs_item, md.main) == Decimal("12")

    def test_untouched_pair_reads_zero(self, session_factory, master_data):
        assert _qty(session_factory, master_data.kg_item, master_data.branch) == Decimal("0")

    def test_delta_is_rounded_to_three_places(self, session_factory, master_data, deterministic_clock):
        md = master_data
        _apply(session_factory, deterministic_clock, (md.main, md.pcs_item, "1.0005", True))
        assert _qty(session_factory, md.pcs_item, md.main) == Decimal("1.001")

    def test_insufficient_decrement_rejected(self, session_factory, master_data, deterministic_clock):
        md = master_data
        _apply(session_factory, deterministic_clock, (md.main, md.pcs_item, "10", True))

        with pytest.raises(InsufficientStockError) as exc_info:
            _apply(session_factory, deterministic_clock, (md.main, md.pcs_item, "-15", True))

        err = exc_info.value
        assert err.available == Decimal("10")
        assert err.requested == Decimal("15")
        assert err.item_id == str(md.pcs_item)
        assert err.warehouse_id == str(md.main)
        assert _qty(session_factory, md.pcs_item, md.main) == Decimal("10")

    def test_exact_decrement_to_zero_keeps_row(
        self, session_factory, session, master_data, deterministic_clock
    ):
        md = master_data
        _apply(
            session_factory,
            deterministic_clock,
            (md.main, md.pcs_item, "4", True),
            (md.main, md.pcs_item, "-4", True),
        )
        entry = session.query(StockEntry).filter_by(item_id=md.pcs_item, warehouse_id=md.main).one()
        assert entry.quantity == Decimal("0")

    def test_unchecked_decrement_may_go_negative(
        self, session_factory, master_data, deterministic_clock
    ):
        md = master_data
        _apply(session_factory, deterministic_clock, (md.main, md.pcs_item, "-3", False))
        assert _qty(session_factory, md.pcs_item, md.main) == Decimal("-3")

    def test_failure_rolls_back_earlier_deltas(
        self, session_factory, master_data, deterministic_clock
    ):
        md = master_data
        with pytest.raises(InsufficientStockError):
            _apply(
                session_factory,
                deterministic_clock,
                (md.branch, md.pcs_item, "5", True),
                (md.main, md.pcs_item, "-1", True),
            )
        assert _qty(session_factory, md.pcs_item, md.branch) == Decimal("0")

    def test_last_updated_comes_from_clock(
        self, session_factory, session, master_data, deterministic_clock
    ):
        md = master_data
        deterministic_clock.advance(3600)
        _apply(session_factory, deterministic_clock, (md.main, md.kg_item, "1", True))
        entry = session.query(StockEntry).filter_by(item_id=md.kg_item, warehouse_id=md.main).one()
        assert _naive_utc(entry.last_updated) == _naive_utc(deterministic_clock.now())

    def test_logs_applied_and_rejected(
        self, session_factory, master_data, deterministic_clock, captured_logs
    ):
        md = master_data
        _apply(session_factory, deterministic_clock, (md.main, md.pcs_item, "2", True))
        with pytest.raises(InsufficientStockError):
            _apply(session_factory, deterministic_clock, (md.main, md.pcs_item, "-5", True))

        messages = [r["message"] for r in captured_logs()]
        assert "stock_delta_applied" in messages
        assert "insufficient_stock" in messages
        rejected = next(r for r in captured_logs() if r["message"] == "insufficient_stock")
        assert rejected["available"] == "2.000"
        assert rejected["requested"] == "5.000"


class TestLock:
    def test_lock_creates_row_without_changing_it(self, session_factory, master_data):
        md = master_data
        with unit_of_work(session_factory) as session:
            quantity = StockLedgerService(session).lock(md.branch, md.kg_item)
        assert quantity == Decimal("0")
        assert _qty(session_factory, md.kg_item, md.branch) == Decimal("0")
