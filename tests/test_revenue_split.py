# tests/test_revenue_split.py
from decimal import Decimal

import pytest

from repairhub.errors import ValidationError
from repairhub.quotes import LineItem
from repairhub.revenue_split import CommissionRates, split, split_quote

RATES = CommissionRates.of(70, 10, 20)


def test_scenario_part_and_labor():
    items = [
        LineItem.build("1", "Display", "part", 1, "100", purchase_cost="60"),
        LineItem.build("2", "Labour", "labor", 1, "50"),
    ]
    s = split_quote(items, RATES)
    assert s.gross_margin == Decimal("90.00")
    assert s.centro_commission == Decimal("63.00")
    assert s.corner_commission == Decimal("9.00")
    assert s.platform_commission == Decimal("18.00")
    assert s.unallocated == Decimal("0.00")
    assert s.warnings == []


def test_remainder_is_surfaced_not_absorbed():
    # 33.33% of 10.00 three times leaves a cent on the table
    rates = CommissionRates.of("33.33", "33.33", "33.33")
    s = split("10.00", "0", rates)
    assert (s.centro_cents, s.corner_cents, s.platform_cents) == (333, 333, 333)
    assert s.unallocated == Decimal("0.01")


def test_each_leg_rounded_half_up_independently():
    s = split("0.05", "0", CommissionRates.of(50, 50, 0))
    # 2.5 cents each -> 3 each, one cent over the margin is the rounding epsilon
    assert s.centro_cents == 3
    assert s.corner_cents == 3
    assert s.unallocated_cents == -1


@pytest.mark.parametrize("grand,cost", [("150", "60"), ("99.99", "12.34"), ("0", "0"), ("1234.56", "1000")])
def test_commissions_track_margin(grand, cost):
    rates = CommissionRates.of("62.5", "12.5", "25")
    s = split(grand, cost, rates)
    assert s.gross_margin == Decimal(grand) - Decimal(cost)
    for rate, got in ((rates.centro, s.centro_commission), (rates.corner, s.corner_commission),
                      (rates.platform, s.platform_commission)):
        assert abs(got - s.gross_margin * rate / 100) <= Decimal("0.01")
    assert s.allocated_cents <= s.gross_margin_cents + 1


def test_negative_margin_is_clamped_with_warning():
    s = split("50", "80", RATES)
    assert s.gross_margin == Decimal("0.00")
    assert s.centro_cents == s.corner_cents == s.platform_cents == 0
    assert len(s.warnings) == 1


def test_purchase_cost_above_billed_parts_rejected():
    with pytest.raises(ValidationError):
        split("150", "120", RATES, billed_parts_total="100")


@pytest.mark.parametrize("rates", [
    CommissionRates.of(101, 0, 0),
    CommissionRates.of(-1, 10, 20),
    CommissionRates.of(70, 20, 20),
])
def test_bad_rates_rejected(rates):
    with pytest.raises(ValidationError):
        split("100", "0", rates)
