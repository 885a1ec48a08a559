"""Loan ledger rules - yearly totals, loan creation and settlement"""

import uuid
from dataclasses import replace
from datetime import datetime
from typing import Iterable

from rcard_gateway.domain.interest import calculate_interest
from rcard_gateway.domain.models import Loan, LoanPolicy
from rcard_gateway.utils.date_utils import add_days, format_timestamp, parse_timestamp, whole_days_between


def new_loan_id() -> str:
    return f"loan_{uuid.uuid4().hex}"


def sum_active_for_year(
    loans: Iterable[Loan],
    card_id: str,
    now: datetime,
    include_paid: bool = False,
) -> float:
    """
    Running total of loan principal on a card for the current calendar year.

    Only loans created in now's year (UTC) count. Paid loans are left out
    unless include_paid is set, so by default the yearly cap limits unpaid
    debt rather than origination volume.
    """
    total = 0.0
    for loan in loans:
        if loan.card_id != card_id:
            continue
        if loan.is_paid and not include_paid:
            continue
        created = parse_timestamp(loan.created_at)
        if created is not None and created.year == now.year:
            total += loan.amount
    return total


def build_loan(card_id: str, amount: float, days: int, policy: LoanPolicy, now: datetime) -> Loan:
    """Create an active loan, snapshotting the policy terms it was priced with"""
    interest = calculate_interest(
        amount,
        days,
        policy.loan_interest_rate_monthly,
        policy.loan_min_wait_days,
    )
    return Loan(
        loan_id=new_loan_id(),
        card_id=card_id,
        amount=amount,
        days=days,
        interest_rate_monthly=policy.loan_interest_rate_monthly,
        interest_amount=interest.interest_selected,
        total_due=interest.total_due,
        min_wait_days=policy.loan_min_wait_days,
        created_at=format_timestamp(now),
        due_date=format_timestamp(add_days(now, days)),
    )


def days_elapsed(loan: Loan, now: datetime) -> int:
    created = parse_timestamp(loan.created_at)
    if created is None:
        return 0
    return max(0, whole_days_between(created, now))


def settle_loan(loan: Loan, now: datetime, source: str) -> Loan:
    """
    Price a repayment and return the paid copy of the loan.

    Charged days are max(elapsed, min_wait_days): repaying early still costs
    the minimum window, and there is no cap at the contracted days, so a
    late loan keeps accruing at the same daily rate.
    """
    elapsed = days_elapsed(loan, now)
    days_to_charge = max(elapsed, loan.min_wait_days)

    interest = calculate_interest(
        loan.amount,
        days_to_charge,
        loan.interest_rate_monthly,
        loan.min_wait_days,
    )

    return replace(
        loan,
        status="paid",
        paid_at=format_timestamp(now),
        actual_interest=interest.interest_selected,
        actual_total_paid=interest.total_due,
        days_elapsed=elapsed,
        repayment_source=source,
    )
