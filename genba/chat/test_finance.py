import pytest

from genba.chat.drafts import LineItem
from genba.chat.finance import Totals, apply_rounding, compute_totals, line_total


def test_inclusive_estimate_carves_tax_out_of_the_total() -> None:
    items = [LineItem(description="ALCパネル", qty=2, unit="枚", unit_price=3200)]

    totals = compute_totals(items, "inclusive", 10, "round")

    assert line_total(2, 3200) == 6400
    assert totals == Totals(subtotal=5818, tax=582, total=6400)


def test_exclusive_adds_tax_on_top() -> None:
    totals = compute_totals([LineItem(qty=1, unit_price=10000)], "exclusive", 10, "round")

    assert totals == Totals(subtotal=10000, tax=1000, total=11000)


def test_aggregate_amount_is_accepted_instead_of_lines() -> None:
    assert compute_totals(11000, "inclusive", 10, "round") == Totals(subtotal=10000, tax=1000, total=11000)


def test_no_lines_gives_zero_totals() -> None:
    assert compute_totals([], "exclusive", 10, "round") == Totals(subtotal=0, tax=0, total=0)


def test_rounding_policy_applies_to_tax() -> None:
    # 1005 * 10% = 100.5
    assert compute_totals(1005, "exclusive", 10, "round").tax == 101
    assert compute_totals(1005, "exclusive", 10, "cut").tax == 100
    assert compute_totals(1005, "exclusive", 10, "ceil").tax == 101
    # 1234 * 10% = 123.4
    assert compute_totals(1234, "exclusive", 10, "ceil").tax == 124
    assert compute_totals(1234, "exclusive", 10, "round").tax == 123


def test_apply_rounding_modes_and_unknown_policy() -> None:
    assert apply_rounding(2.5, "round") == 3
    assert apply_rounding(2.5, "cut") == 2
    assert apply_rounding(2.1, "ceil") == 3
    with pytest.raises(ValueError):
        apply_rounding(1.0, "banker")  # type: ignore[arg-type]


def test_line_totals_round_half_up_per_line() -> None:
    assert line_total(1.5, 333) == 500
    assert line_total(0.5, 15001) == 7501
    lines = [LineItem(qty=1.5, unit_price=333), LineItem(qty=1.5, unit_price=333)]
    assert compute_totals(lines, "exclusive", 0, "round").subtotal == 1000


def test_exclusive_tax_rate_can_be_recovered_from_totals() -> None:
    for subtotal in (1, 999, 12345, 1_000_000):
        for rate in (8, 10):
            t = compute_totals(subtotal, "exclusive", rate, "round")
            derived = (t.total - t.subtotal) / t.subtotal * 100
            # half a yen of rounding, expressed as a rate
            assert abs(derived - rate) <= 50 / subtotal + 1e-9
