"""Simple daily interest for card loans"""

from decimal import Decimal, ROUND_HALF_UP

from rcard_gateway.domain.models import InterestBreakdown

DAYS_PER_MONTH = 30  # Fixed convention, not calendar-accurate
_CENT = Decimal("0.01")


def round_credits(value: float | Decimal) -> float:
    """Round a credit amount to 2 dp, halves away from zero"""
    return float(Decimal(str(value)).quantize(_CENT, rounding=ROUND_HALF_UP))


def daily_rate_for(monthly_rate_pct: float) -> float:
    return (monthly_rate_pct / 100) / DAYS_PER_MONTH


def calculate_interest(
    principal: float,
    days: int,
    monthly_rate_pct: float,
    min_wait_days: int,
) -> InterestBreakdown:
    """
    Compute interest for a loan.

    The monthly rate is spread over a 30-day month. Interest never compounds.

    Args:
        principal: Loan amount in credits
        days: Day count to charge (contracted or elapsed)
        monthly_rate_pct: Monthly rate as a percentage (2.0 == 2%)
        min_wait_days: Minimum interest window for early payoff

    Returns:
        InterestBreakdown with the unrounded daily rate and rounded amounts

    Example:
        1000 CR, 30 days, 2% monthly, 7 day wait
        → daily 0.000667, min-wait 4.67, selected 20.00, total 1020.00
    """
    daily_rate = daily_rate_for(monthly_rate_pct)

    interest_min_wait = round_credits(principal * daily_rate * min_wait_days)
    interest_selected = round_credits(principal * daily_rate * days)
    total_due = round_credits(Decimal(str(principal)) + Decimal(str(interest_selected)))

    return InterestBreakdown(
        daily_rate=daily_rate,
        interest_min_wait=interest_min_wait,
        interest_selected=interest_selected,
        total_due=total_due,
    )
