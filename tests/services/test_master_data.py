"""MasterDataService -- items, conversion tables and warehouses."""

from decimal import Decimal
from uuid import uuid4

import pytest

from inventory_kernel.domain.units import UnitConversion
from inventory_kernel.domain.values import ConversionOperator
from inventory_kernel.exceptions import (
    InvalidConversionError,
    ItemNotFoundError,
    ValidationError,
    WarehouseNotFoundError,
)
from inventory_kernel.services import MasterDataService


@pytest.fixture
def master(session):
    return MasterDataService(session)


class TestItems:
    def test_create_and_fetch(self, master):
        item = master.create_item(
            "C001",
            "Cable",
            "Meter",
            conversions=[
                UnitConversion("Roll", Decimal("50")),
                UnitConversion("Cm", Decimal("100"), ConversionOperator.DIVIDE),
            ],
            category="Electrical",
            min_stock="25",
        )
        fetched = master.get_item(item.id)
        assert fetched.code == "C001"
        assert fetched.min_stock == Decimal("25")
        assert [c.name for c in fetched.conversions] == ["Roll", "Cm"]
        units = master.get_item_units(item.id)
        assert units.base_unit == "Meter"
        assert units.find("Cm").effective_ratio == Decimal("0.01")

    def test_find_by_code(self, master):
        master.create_item("C002", "Clip", "Pcs")
        assert master.find_item_by_code("C002").name == "Clip"
        assert master.find_item_by_code("NOPE") is None

    def test_duplicate_code(self, master):
        master.create_item("C003", "Clamp", "Pcs")
        with pytest.raises(ValidationError) as exc_info:
            master.create_item("C003", "Other", "Pcs")
        assert exc_info.value.field == "code"

    def test_negative_min_stock(self, master):
        with pytest.raises(ValidationError):
            master.create_item("C004", "Bolt", "Pcs", min_stock=-1)

    def test_missing_item(self, master):
        with pytest.raises(ItemNotFoundError):
            master.get_item(uuid4())

    @pytest.mark.parametrize(
        "conversions",
        [
            [UnitConversion("Pcs", Decimal("2"))],
            [UnitConversion("Box", Decimal("2")), UnitConversion("Box", Decimal("3"))],
            [UnitConversion(" ", Decimal("2"))],
            [UnitConversion("Box", Decimal("0.0000000000000000001"))],
            [UnitConversion("Box", Decimal("10") ** 21)],
        ],
    )
    def test_invalid_conversions(self, master, conversions):
        with pytest.raises(InvalidConversionError):
            master.create_item("C005", "Nut", "Pcs", conversions=conversions)

    def test_replace_conversions(self, master):
        item = master.create_item("C006", "Tape", "Pcs", [UnitConversion("Box", Decimal("10"))])
        updated = master.replace_conversions(
            item.id,
            [UnitConversion("Box", Decimal("20")), UnitConversion("Crate", Decimal("200"))],
        )
        assert [(c.name, c.ratio) for c in updated.conversions] == [
            ("Box", Decimal("20")),
            ("Crate", Decimal("200")),
        ]

    def test_update_item(self, master):
        item = master.create_item("C007", "Glue", "Tube")
        updated = master.update_item(item.id, name="Super Glue", min_stock="3", is_active=False)
        assert updated.name == "Super Glue"
        assert updated.min_stock == Decimal("3")
        assert updated.is_active is False
        assert updated.base_unit == "Tube"


class TestWarehouses:
    def test_create_and_lookup(self, master):
        warehouse = master.create_warehouse("North", location="Medan", pic="Budi", phone="0811")
        assert master.warehouse_exists(warehouse.id)
        assert master.get_warehouse(warehouse.id).pic == "Budi"
        assert master.find_warehouse_by_name(" North ").id == warehouse.id

    def test_list_sorted_by_name(self, master):
        master.create_warehouse("Zeta")
        master.create_warehouse("Alpha")
        assert [w.name for w in master.list_warehouses()] == ["Alpha", "Zeta"]

    def test_missing_warehouse(self, master):
        assert not master.warehouse_exists(uuid4())
        with pytest.raises(WarehouseNotFoundError):
            master.require_warehouse(uuid4())

    def test_name_required(self, master):
        with pytest.raises(ValidationError):
            master.create_warehouse("  ")
