"""
Effect computation (inventory_kernel/domain/effects.py).

Verifies the type -> delta mapping, the exact inverse on REVERT, merging of
lines per (warehouse, item) and the global lock order.
"""

from decimal import Decimal
from uuid import UUID, uuid4

import pytest

from inventory_kernel.domain.effects import EffectLine, compute_effects, line_base_qty
from inventory_kernel.domain.values import EffectDirection, TransactionType

W1 = UUID("00000000-0000-0000-0000-000000000001")
W2 = UUID("00000000-0000-0000-0000-000000000002")
ITEM_A = UUID("00000000-0000-0000-0000-00000000000a")
ITEM_B = UUID("00000000-0000-0000-0000-00000000000b")


def _deltas(deltas):
    return [(d.warehouse_id, d.item_id, d.delta) for d in deltas]


class TestEffectMapping:
    @pytest.mark.parametrize(
        "transaction_type,sign",
        [
            (TransactionType.IN, 1),
            (TransactionType.ADJUSTMENT, 1),
            (TransactionType.OUT, -1),
        ],
    )
    def test_single_warehouse_types(self, transaction_type, sign):
        deltas = compute_effects(
            transaction_type, W1, None, [EffectLine(ITEM_A, Decimal("2"), Decimal("10"))]
        )
        assert _deltas(deltas) == [(W1, ITEM_A, sign * Decimal("20.000"))]

    def test_transfer_moves_between_warehouses(self):
        deltas = compute_effects(
            TransactionType.TRANSFER, W2, W1, [EffectLine(ITEM_A, Decimal("5"), Decimal("1"))]
        )
        assert _deltas(deltas) == [
            (W1, ITEM_A, Decimal("5.000")),
            (W2, ITEM_A, Decimal("-5.000")),
        ]

    def test_transfer_without_target_is_rejected(self):
        with pytest.raises(ValueError):
            compute_effects(
                TransactionType.TRANSFER, W1, None, [EffectLine(ITEM_A, Decimal("1"), Decimal("1"))]
            )

    def test_only_negative_deltas_expect_sufficiency(self):
        deltas = compute_effects(
            TransactionType.TRANSFER, W1, W2, [EffectLine(ITEM_A, Decimal("1"), Decimal("1"))]
        )
        by_warehouse = {d.warehouse_id: d for d in deltas}
        assert by_warehouse[W1].expect_sufficient
        assert not by_warehouse[W2].expect_sufficient


class TestRevert:
    @pytest.mark.parametrize("transaction_type", list(TransactionType))
    def test_revert_is_exact_negation(self, transaction_type):
        target = W2 if transaction_type is TransactionType.TRANSFER else None
        lines = [
            EffectLine(ITEM_A, Decimal("3"), Decimal("0.333333333333333333")),
            EffectLine(ITEM_B, Decimal("1.5"), Decimal("12")),
        ]
        applied = compute_effects(transaction_type, W1, target, lines)
        reverted = compute_effects(
            transaction_type, W1, target, lines, direction=EffectDirection.REVERT
        )
        assert _deltas(reverted) == [(w, i, -d) for w, i, d in _deltas(applied)]


class TestMergingAndOrder:
    def test_lines_for_same_item_are_summed(self):
        deltas = compute_effects(
            TransactionType.IN,
            W1,
            None,
            [
                EffectLine(ITEM_A, Decimal("1"), Decimal("10")),
                EffectLine(ITEM_A, Decimal("3"), Decimal("1")),
            ],
        )
        assert _deltas(deltas) == [(W1, ITEM_A, Decimal("13.000"))]

    def test_each_line_is_rounded_before_summing(self):
        third = Decimal("0.333333333333333333")
        deltas = compute_effects(
            TransactionType.IN,
            W1,
            None,
            [EffectLine(ITEM_A, Decimal("1"), third), EffectLine(ITEM_A, Decimal("1"), third)],
        )
        assert deltas[0].delta == Decimal("0.666")

    def test_deltas_sorted_by_warehouse_then_item(self):
        items = [uuid4() for _ in range(5)]
        deltas = compute_effects(
            TransactionType.TRANSFER,
            W2,
            W1,
            [EffectLine(item, Decimal("1"), Decimal("1")) for item in items],
        )
        keys = [d.lock_key for d in deltas]
        assert keys == sorted(keys)
        assert keys[0][0] == str(W1)

    def test_line_base_qty_matches_persisted_rounding(self):
        assert line_base_qty(Decimal("0.0005"), Decimal("1")) == Decimal("0.001")
        assert line_base_qty(Decimal("0.0004"), Decimal("1")) == Decimal("0.000")

    def test_zero_net_rows_are_dropped(self):
        deltas = compute_effects(
            TransactionType.IN, W1, None, [EffectLine(ITEM_A, Decimal("0.0001"), Decimal("1"))]
        )
        assert deltas == []
