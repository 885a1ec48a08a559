"""Unit tests for yearly totals and loan settlement"""

import pytest
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from rcard_gateway.domain.ledger import build_loan, days_elapsed, settle_loan, sum_active_for_year
from rcard_gateway.domain.models import LoanPolicy
from rcard_gateway.utils.date_utils import format_timestamp

NOW = datetime(2026, 6, 15, 12, 0, tzinfo=timezone.utc)
POLICY = LoanPolicy(
    loan_enabled=True,
    loan_max_amount=2000,
    loan_max_year=5000,
    loan_interest_rate_monthly=2.0,
    loan_min_wait_days=7,
    loan_max_days=90,
)


def _loan(amount=1000, days=30, created=NOW, card_id="c1", status="active"):
    loan = build_loan(card_id, amount, days, POLICY, created)
    return replace(loan, status=status)


def test_build_loan_snapshots_policy_and_prices_contracted_days():
    loan = build_loan("c1", 1000, 30, POLICY, NOW)

    assert loan.loan_id.startswith("loan_")
    assert loan.status == "active"
    assert loan.interest_rate_monthly == 2.0
    assert loan.min_wait_days == 7
    assert loan.interest_amount == 20.0
    assert loan.total_due == 1020.0
    assert loan.created_at == format_timestamp(NOW)
    assert loan.due_date == format_timestamp(NOW + timedelta(days=30))
    assert loan.paid_at is None and loan.actual_interest is None and loan.days_elapsed is None


def test_sum_active_for_year_counts_unpaid_loans_this_year():
    loans = [_loan(500), _loan(700, created=NOW - timedelta(days=100))]
    assert sum_active_for_year(loans, "c1", NOW) == 1200


def test_sum_active_for_year_excludes_paid_loans():
    loans = [_loan(500), _loan(700, status="paid")]
    assert sum_active_for_year(loans, "c1", NOW) == 500


def test_sum_active_for_year_excludes_prior_years_whatever_the_status():
    last_year = datetime(2025, 12, 31, 23, 59, tzinfo=timezone.utc)
    loans = [_loan(500, created=last_year), _loan(300, created=last_year, status="paid"), _loan(100)]
    assert sum_active_for_year(loans, "c1", NOW) == 100


def test_sum_active_for_year_is_per_card():
    loans = [_loan(500), _loan(800, card_id="c2")]
    assert sum_active_for_year(loans, "c1", NOW) == 500
    assert sum_active_for_year(loans, "c2", NOW) == 800


def test_sum_active_for_year_can_count_paid_loans():
    loans = [_loan(500), _loan(700, status="paid")]
    assert sum_active_for_year(loans, "c1", NOW, include_paid=True) == 1200


def test_days_elapsed_floors_partial_days():
    loan = _loan()
    assert days_elapsed(loan, NOW + timedelta(days=6, hours=23, minutes=59)) == 6
    assert days_elapsed(loan, NOW + timedelta(days=7)) == 7
    assert days_elapsed(loan, NOW - timedelta(hours=1)) == 0


def test_settle_same_day_charges_minimum_wait():
    settled = settle_loan(_loan(), NOW, "card_balance")

    assert settled.status == "paid"
    assert settled.days_elapsed == 0
    assert settled.actual_interest == 4.67
    assert settled.actual_total_paid == 1004.67
    assert settled.paid_at == format_timestamp(NOW)
    assert settled.repayment_source == "card_balance"


def test_settle_between_wait_and_due_charges_elapsed_days():
    loan = _loan()
    settled = settle_loan(loan, NOW + timedelta(days=10), "card_balance")

    assert settled.days_elapsed == 10
    assert settled.actual_interest == 6.67
    assert settled.actual_total_paid < loan.total_due


def test_settle_after_due_date_keeps_accruing():
    loan = _loan()
    settled = settle_loan(loan, NOW + timedelta(days=45), "card_balance")

    assert settled.days_elapsed == 45
    assert settled.actual_interest == 30.0
    assert settled.actual_total_paid == 1030.0
    assert settled.actual_total_paid > loan.total_due


def test_settle_uses_snapshotted_rate():
    loan = replace(_loan(), interest_rate_monthly=3.0)
    settled = settle_loan(loan, NOW + timedelta(days=30), "card_balance")
    assert settled.actual_interest == pytest.approx(30.0)


def test_settle_leaves_original_untouched():
    loan = _loan()
    settle_loan(loan, NOW, "card_balance")
    assert loan.status == "active"
    assert loan.paid_at is None
