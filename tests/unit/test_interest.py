"""Unit tests for loan interest calculation"""

import pytest
from rcard_gateway.domain.interest import calculate_interest, round_credits


def test_calculate_interest_reference_scenario():
    """1000 CR for 30 days at 2% monthly with a 7 day wait"""
    interest = calculate_interest(1000, 30, 2.0, 7)

    assert interest.daily_rate == pytest.approx(0.02 / 30)
    assert round(interest.daily_rate, 6) == 0.000667
    assert interest.interest_selected == 20.00
    assert interest.total_due == 1020.00
    assert interest.interest_min_wait == 4.67


def test_daily_rate_is_not_rounded():
    interest = calculate_interest(500, 10, 1.8, 7)
    assert interest.daily_rate == (1.8 / 100) / 30


@pytest.mark.parametrize("principal", [100, 250.5, 1234.56, 15000])
@pytest.mark.parametrize("days", [0, 1, 17, 90, 180])
@pytest.mark.parametrize("rate", [0.0, 1.5, 2.5])
def test_total_due_is_principal_plus_rounded_interest(principal, days, rate):
    interest = calculate_interest(principal, days, rate, 7)

    expected_interest = round_credits(principal * ((rate / 100) / 30) * days)
    assert interest.interest_selected == expected_interest
    assert interest.total_due == pytest.approx(principal + expected_interest, abs=1e-9)


def test_zero_days_costs_nothing():
    interest = calculate_interest(1000, 0, 2.0, 7)
    assert interest.interest_selected == 0.0
    assert interest.total_due == 1000.0


@pytest.mark.parametrize(
    "value,expected",
    [
        (2.675, 2.68),  # Built-in round() gives 2.67
        (0.125, 0.13),
        (-0.125, -0.13),
        (4.666666, 4.67),
        (19.999999999999996, 20.0),
    ],
)
def test_round_credits_half_away_from_zero(value, expected):
    assert round_credits(value) == expected
