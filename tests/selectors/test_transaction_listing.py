"""
Transaction listing and the stock card.

Verifies:
- Listings are newest first and filter by date, warehouse (either side)
  and type
- Lines carry item code and name for display
- The stock card is oldest first with a running balance
"""

from datetime import date
from decimal import Decimal

import pytest

from inventory_kernel.domain.dtos import TransactionFilter
from inventory_kernel.domain.values import TransactionType

IN = TransactionType.IN
OUT = TransactionType.OUT
TRANSFER = TransactionType.TRANSFER


@pytest.fixture
def history(service, master_data, make_request, deterministic_clock):
    """
    Jan 10  IN-A   Main    +10 A001
    Jan 12  TR-A   Main -> Branch 4 A001
    Jan 12  OUT-A  Main    -2 A001
    Jan 20  IN-B   Branch  +1 Kg B001
    """
    md = master_data

    def _submit(request):
        deterministic_clock.tick()
        return service.submit_transaction(request)

    ids = {}
    ids["IN-A"] = _submit(
        make_request(IN, md.main, [(md.pcs_item, 10, "Pcs")],
                     reference_no="IN-A", transaction_date=date(2024, 1, 10))
    )
    ids["TR-A"] = _submit(
        make_request(TRANSFER, md.main, [(md.pcs_item, 4, "Pcs")], target=md.branch,
                     reference_no="TR-A", transaction_date=date(2024, 1, 12))
    )
    ids["OUT-A"] = _submit(
        make_request(OUT, md.main, [(md.pcs_item, 2, "Pcs")],
                     reference_no="OUT-A", transaction_date=date(2024, 1, 12))
    )
    ids["IN-B"] = _submit(
        make_request(IN, md.branch, [(md.kg_item, 1, "Kg")],
                     reference_no="IN-B", transaction_date=date(2024, 1, 20))
    )
    return ids


def _refs(transactions):
    return [t.reference_no for t in transactions]


class TestListTransactions:
    def test_newest_first(self, service, history):
        assert _refs(service.list_transactions()) == ["IN-B", "OUT-A", "TR-A", "IN-A"]

    def test_date_bounds_inclusive(self, service, history):
        f = TransactionFilter(date_from=date(2024, 1, 12), date_to=date(2024, 1, 12))
        assert _refs(service.list_transactions(f)) == ["OUT-A", "TR-A"]

    def test_warehouse_matches_source_or_target(self, service, history, master_data):
        f = TransactionFilter(warehouse_id=master_data.branch)
        assert _refs(service.list_transactions(f)) == ["IN-B", "TR-A"]

    def test_type_filter(self, service, history):
        f = TransactionFilter(transaction_type=TransactionType.IN)
        assert _refs(service.list_transactions(f)) == ["IN-B", "IN-A"]

    def test_lines_carry_item_labels(self, service, history):
        listed = {t.reference_no: t for t in service.list_transactions()}
        line = listed["IN-B"].lines[0]
        assert (line.item_code, line.item_name) == ("B001", "Flour")

    def test_find_by_reference(self, service, history):
        found = service.find_transaction("TR-A")
        assert found.id == history["TR-A"]
        assert found.lines[0].item_code == "A001"
        assert service.find_transaction("NOPE") is None


class TestStockCard:
    def test_running_balance(self, service, history, master_data):
        md = master_data
        card = service.stock_movements(md.pcs_item, md.main)
        assert [(m.reference_no, m.qty_in, m.qty_out, m.balance) for m in card] == [
            ("IN-A", Decimal("10"), Decimal("0"), Decimal("10")),
            ("TR-A", Decimal("0"), Decimal("4"), Decimal("6")),
            ("OUT-A", Decimal("0"), Decimal("2"), Decimal("4")),
        ]
        assert card[-1].balance == service.get_stock_qty(md.pcs_item, md.main)

    def test_transfer_counts_in_at_target(self, service, history, master_data):
        card = service.stock_movements(master_data.pcs_item, master_data.branch)
        assert [(m.reference_no, m.qty_in, m.balance) for m in card] == [
            ("TR-A", Decimal("4"), Decimal("4")),
        ]

    def test_date_from_keeps_opening_balance(self, service, history, master_data):
        card = service.stock_movements(
            master_data.pcs_item, master_data.main, date_from=date(2024, 1, 11)
        )
        assert [m.reference_no for m in card] == ["TR-A", "OUT-A"]
        assert card[0].balance == Decimal("6")

    def test_date_to(self, service, history, master_data):
        card = service.stock_movements(
            master_data.pcs_item, master_data.main, date_to=date(2024, 1, 10)
        )
        assert [m.reference_no for m in card] == ["IN-A"]

    def test_other_item_not_listed(self, service, history, master_data):
        assert service.stock_movements(master_data.kg_item, master_data.main) == []
