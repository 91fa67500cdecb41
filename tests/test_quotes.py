# tests/test_quotes.py
from decimal import Decimal

import pytest

from repairhub.errors import ValidationError
from repairhub.quotes import LineItem, totals


def test_empty_quote_is_all_zero():
    t = totals([])
    assert t.parts_total == t.labor_total == t.service_total == t.grand_total == Decimal("0.00")
    assert t.parts_purchase_cost == Decimal("0.00")


def test_totals_by_kind():
    items = [
        LineItem.build("1", "Display", "part", 1, "100", purchase_cost="60"),
        LineItem.build("2", "Labour", "labor", 1, 50),
    ]
    t = totals(items)
    assert t.parts_total == Decimal("100.00")
    assert t.labor_total == Decimal("50.00")
    assert t.service_total == Decimal("0.00")
    assert t.grand_total == Decimal("150.00")
    assert t.parts_purchase_cost == Decimal("60.00")


def test_grand_total_is_sum_of_kinds():
    items = [
        LineItem.build("1", "Battery", "part", 3, "19.99", purchase_cost="7.35"),
        LineItem.build("2", "Screen", "part", 2, "89.90", purchase_cost="41.10"),
        LineItem.build("3", "Labour", "labor", 2, "25.50"),
        LineItem.build("4", "Data backup", "service", 1, "15"),
    ]
    t = totals(items)
    assert t.grand_total == t.parts_total + t.labor_total + t.service_total
    assert t.parts_total == Decimal("239.77")
    assert t.parts_purchase_cost == Decimal("104.25")


def test_no_drift_on_repeated_cents():
    items = [LineItem.build(str(i), "Screw", "part", 1, "0.10") for i in range(1000)]
    assert totals(items).grand_total == Decimal("100.00")


def test_purchase_cost_ignored_for_labor():
    t = totals([LineItem.build("1", "Labour", "labor", 2, "30", purchase_cost="0")])
    assert t.parts_purchase_cost == Decimal("0.00")


@pytest.mark.parametrize("kw", [
    dict(quantity=0),
    dict(unit_price="-1"),
    dict(kind="gift"),
    dict(purchase_cost="120"),
])
def test_invalid_line_items_rejected(kw):
    args = dict(id="1", description="x", kind="part", quantity=1, unit_price="100", purchase_cost="10")
    args.update(kw)
    with pytest.raises(ValidationError):
        LineItem.build(**args)
