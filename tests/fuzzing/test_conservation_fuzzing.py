"""
Hypothesis-based fuzzing of the stock effect rules.

Properties checked:
- compute_effects: revert is the exact negation of apply; a transfer nets
  to zero across warehouses; deltas come out in lock order.
- Unit resolution: the stored ratio reproduces the base quantity.
- Random create / update / delete sequences never leave stock negative and
  never break conservation between the stock table and the transaction log.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID, uuid4

from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from inventory_kernel.db.types import ZERO, round_quantity
from inventory_kernel.domain.effects import EffectLine, compute_effects, line_base_qty
from inventory_kernel.domain.units import ItemUnits, UnitConversion, resolve_base_qty
from inventory_kernel.domain.values import ConversionOperator, EffectDirection, TransactionType
from inventory_kernel.exceptions import InsufficientStockError

WAREHOUSES = [UUID(int=1), UUID(int=2), UUID(int=3)]
ITEMS = [UUID(int=101), UUID(int=102), UUID(int=103)]

quantities = st.decimals(
    min_value=Decimal("0.001"), max_value=Decimal("100000"), places=3, allow_nan=False
)
ratios = st.decimals(min_value=Decimal("0.001"), max_value=Decimal("1000"), places=3)


@st.composite
def effect_lines(draw):
    return [
        EffectLine(item_id=draw(st.sampled_from(ITEMS)), qty=draw(quantities), ratio=draw(ratios))
        for _ in range(draw(st.integers(min_value=1, max_value=6)))
    ]


@st.composite
def effect_inputs(draw):
    transaction_type = draw(st.sampled_from(list(TransactionType)))
    source = draw(st.sampled_from(WAREHOUSES))
    target = None
    if transaction_type is TransactionType.TRANSFER:
        target = draw(st.sampled_from([w for w in WAREHOUSES if w != source]))
    return transaction_type, source, target, draw(effect_lines())


class TestEffectProperties:
    @given(effect_inputs())
    @settings(max_examples=200, deadline=None)
    def test_revert_negates_apply(self, inputs):
        transaction_type, source, target, lines = inputs
        applied = compute_effects(transaction_type, source, target, lines)
        reverted = compute_effects(
            transaction_type, source, target, lines, direction=EffectDirection.REVERT
        )
        assert [(d.warehouse_id, d.item_id, -d.delta) for d in applied] == [
            (d.warehouse_id, d.item_id, d.delta) for d in reverted
        ]

    @given(effect_inputs())
    @settings(max_examples=200, deadline=None)
    def test_deltas_sorted_unique_and_nonzero(self, inputs):
        deltas = compute_effects(*inputs)
        keys = [d.lock_key for d in deltas]
        assert keys == sorted(keys)
        assert len(set(keys)) == len(keys)
        assert all(d.delta != ZERO for d in deltas)

    @given(effect_lines(), st.sampled_from(WAREHOUSES))
    @settings(max_examples=200, deadline=None)
    def test_transfer_conserves_total(self, lines, source):
        target = next(w for w in WAREHOUSES if w != source)
        deltas = compute_effects(TransactionType.TRANSFER, source, target, lines)
        for item_id in ITEMS:
            assert sum((d.delta for d in deltas if d.item_id == item_id), ZERO) == ZERO

    @given(effect_lines(), st.sampled_from(WAREHOUSES))
    @settings(max_examples=200, deadline=None)
    def test_out_totals_per_line_rounding(self, lines, source):
        deltas = compute_effects(TransactionType.OUT, source, None, lines)
        for item_id in ITEMS:
            expected = sum(
                (line_base_qty(line.qty, line.ratio) for line in lines if line.item_id == item_id),
                ZERO,
            )
            actual = sum((d.delta for d in deltas if d.item_id == item_id), ZERO)
            assert actual == -expected


class TestUnitResolutionProperties:
    @given(
        quantities,
        st.integers(min_value=1, max_value=10000),
        st.sampled_from(list(ConversionOperator)),
    )
    @settings(max_examples=200, deadline=None)
    def test_ratio_snapshot_reproduces_base_qty(self, qty, ratio, operator):
        units = ItemUnits(
            item_id=ITEMS[0],
            base_unit="Pcs",
            conversions=(UnitConversion("Alt", Decimal(ratio), operator),),
        )
        resolved = resolve_base_qty(units, qty, "Alt")
        assert resolved.base_qty == qty * resolved.ratio
        assert line_base_qty(qty, resolved.ratio) == round_quantity(resolved.base_qty)
        if operator is ConversionOperator.MULTIPLY:
            assert resolved.ratio == Decimal(ratio)

    @given(quantities)
    @settings(max_examples=100, deadline=None)
    def test_base_unit_ratio_is_one(self, qty):
        units = ItemUnits(item_id=ITEMS[0], base_unit="Kg")
        resolved = resolve_base_qty(units, qty, "Kg")
        assert resolved.ratio == Decimal(1)
        assert resolved.base_qty == qty


operations = st.lists(
    st.tuples(
        st.sampled_from(["create", "update", "delete"]),
        st.sampled_from(list(TransactionType)),
        st.integers(min_value=1, max_value=20),
        st.sampled_from(["Pcs", "Box", "Half"]),
        st.booleans(),
    ),
    min_size=1,
    max_size=10,
)


class TestLedgerSequences:
    @given(operations)
    @settings(
        max_examples=25,
        deadline=None,
        suppress_health_check=[HealthCheck.function_scoped_fixture],
    )
    def test_random_sequences_conserve_stock(self, service, master_data, make_request, ops):
        md = master_data
        live: list[tuple[UUID, TransactionType]] = []

        def _request(transaction_type, qty, unit, from_main):
            source, other = (md.main, md.branch) if from_main else (md.branch, md.main)
            return make_request(
                transaction_type,
                source,
                [(md.pcs_item, qty, unit)],
                target=other if transaction_type is TransactionType.TRANSFER else None,
                reference_no=f"FZ-{uuid4().hex[:12]}",
                transaction_date=date(2024, 2, 1),
            )

        for action, transaction_type, qty, unit, from_main in ops:
            try:
                if action == "create" or not live:
                    tx_id = service.submit_transaction(
                        _request(transaction_type, qty, unit, from_main)
                    )
                    live.append((tx_id, transaction_type))
                elif action == "update":
                    tx_id, original_type = live[qty % len(live)]
                    service.edit_transaction(tx_id, _request(original_type, qty, unit, from_main))
                else:
                    entry = live[qty % len(live)]
                    service.remove_transaction(entry[0])
                    live.remove(entry)
            except InsufficientStockError:
                pass

            assert service.verify_conservation() == []
            assert all(s.quantity >= ZERO for s in service.list_stocks())
