"""Loan orchestration: bootstrap, preview, create, repay"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.orm import Session

from rcard_gateway.config import settings
from rcard_gateway.domain.exceptions import ErrorKind, LockTimeoutError, PersistenceError
from rcard_gateway.domain.interest import calculate_interest
from rcard_gateway.domain.models import Card, Loan, LoanPolicy, ServiceResult
from rcard_gateway.domain.policy import PolicyCatalog
from rcard_gateway.infrastructure.locks import KeyedLockRegistry, lock_registry, user_lock_key
from rcard_gateway.infrastructure.observability.logging import emit_event
from rcard_gateway.infrastructure.observability.metrics import record_loan, repayment_counter
from rcard_gateway.infrastructure.storage.documents import DocumentStore
from rcard_gateway.infrastructure.storage.repositories import CardBalanceStore, LoanLedger, OrgCardCatalog
from rcard_gateway.utils.date_utils import add_days, format_timestamp, utcnow

logger = logging.getLogger(__name__)


@dataclass
class _ValidatedTerms:
    card: Card
    policy: LoanPolicy
    year_total: float


class LoanService:
    """
    Loan operations for one authenticated user.

    Every operation runs under the user's lock and ends its unit of work
    before the lock is released. Business failures come back as
    ServiceResult values; only unexpected faults propagate.
    """

    def __init__(
        self,
        db: Session,
        catalog: PolicyCatalog,
        locks: KeyedLockRegistry = lock_registry,
        clock: Callable[[], datetime] = utcnow,
        min_amount: float | None = None,
        year_cap_counts_paid: bool | None = None,
    ):
        self.store = DocumentStore(db)
        self.catalog = catalog
        self.locks = locks
        self.clock = clock
        self.min_amount = settings.loan_min_amount if min_amount is None else min_amount
        if year_cap_counts_paid is None:
            year_cap_counts_paid = settings.loan_year_cap_counts_paid
        self.cards = CardBalanceStore(self.store)
        self.loans = LoanLedger(self.store, year_cap_counts_paid=year_cap_counts_paid)
        self.org_cards = OrgCardCatalog(self.store)

    def _locked(self, user_id: str, action: str, operation: Callable[[], ServiceResult]) -> ServiceResult:
        try:
            with self.locks.hold(user_lock_key(user_id)):
                try:
                    return operation()
                finally:
                    # Discards anything staged but not committed
                    self.store.rollback()
        except LockTimeoutError:
            return ServiceResult.failure(ErrorKind.PERSISTENCE_FAILURE, "Service busy, try again")
        except PersistenceError as e:
            logger.error(f"Persistence failure during {action}: {e}", extra={"user_id": user_id, "action": action})
            return ServiceResult.failure(ErrorKind.PERSISTENCE_FAILURE, "Internal server error")

    def policy_for(self, card: Card) -> LoanPolicy:
        org_card = self.org_cards.get(card.org_id, card.org_card_id) if card.is_org_card else None
        return self.catalog.resolve(card, org_card)

    def _validate(
        self,
        user_id: str,
        card_id: str,
        amount: float,
        days: int,
        now: datetime,
    ) -> ServiceResult[_ValidatedTerms]:
        """
        Shared constraint chain for preview and create; first failure wins.

        1. Card usable
        2. Loans enabled for the card
        3. Amount >= global minimum
        4. Amount <= per-loan maximum
        5. Year total + amount <= yearly maximum
        6. 1 <= days <= maximum duration
        """
        card = self.cards.get(user_id, now, card_id=card_id)
        if card is None:
            return ServiceResult.failure(ErrorKind.NOT_FOUND, "Card not found")

        policy = self.policy_for(card)
        if not policy.loan_enabled:
            return ServiceResult.failure(ErrorKind.POLICY_DISABLED, "Loans not enabled for this card")

        if amount < self.min_amount:
            return ServiceResult.failure(ErrorKind.VALIDATION_FAILED, "Amount below minimum")

        if amount > policy.loan_max_amount:
            return ServiceResult.failure(ErrorKind.VALIDATION_FAILED, "Amount exceeds card limit")

        year_total = self.loans.sum_active_for_year(user_id, card_id, now)
        if year_total + amount > policy.loan_max_year:
            return ServiceResult.failure(ErrorKind.VALIDATION_FAILED, "Amount exceeds yearly limit")

        if days < 1 or days > policy.loan_max_days:
            return ServiceResult.failure(ErrorKind.VALIDATION_FAILED, "Invalid loan duration")

        return ServiceResult.success(_ValidatedTerms(card=card, policy=policy, year_total=year_total))

    def bootstrap(self, user_id: str, card_id: str) -> ServiceResult[Dict[str, Any]]:
        """Policy and yearly headroom for the loan form"""

        def run() -> ServiceResult[Dict[str, Any]]:
            now = self.clock()
            card = self.cards.get(user_id, now, card_id=card_id)
            if card is None:
                return ServiceResult.failure(ErrorKind.NOT_FOUND, "Card not found")

            policy = self.policy_for(card)
            year_total = self.loans.sum_active_for_year(user_id, card_id, now)
            return ServiceResult.success({
                "card_id": card.card_id,
                "loan_enabled": policy.loan_enabled,
                "policy": policy.to_dict(),
                "year_total": year_total,
                "remaining_year": max(0.0, policy.loan_max_year - year_total),
            })

        return self._locked(user_id, "bootstrap", run)

    def preview(self, user_id: str, card_id: str, amount: float, days: int) -> ServiceResult[Dict[str, Any]]:
        """Price a loan without creating it"""

        def run() -> ServiceResult[Dict[str, Any]]:
            now = self.clock()
            validated = self._validate(user_id, card_id, amount, days, now)
            if not validated.ok:
                return validated

            policy = validated.value.policy
            interest = calculate_interest(
                amount,
                days,
                policy.loan_interest_rate_monthly,
                policy.loan_min_wait_days,
            )
            return ServiceResult.success({
                "amount": amount,
                "days": days,
                "interest_rate_monthly": policy.loan_interest_rate_monthly,
                "daily_rate": interest.daily_rate,
                "interest_min_wait": interest.interest_min_wait,
                "interest_selected": interest.interest_selected,
                "total_due": interest.total_due,
                "min_wait_days": policy.loan_min_wait_days,
                "due_date": format_timestamp(add_days(now, days)),
            })

        return self._locked(user_id, "preview", run)

    def create(self, user_id: str, card_id: str, amount: float, days: int) -> ServiceResult[Loan]:
        """Create a loan and credit the proceeds to the card balance"""

        def run() -> ServiceResult[Loan]:
            now = self.clock()
            validated = self._validate(user_id, card_id, amount, days, now)
            if not validated.ok:
                return validated

            loan = self.loans.create(user_id, card_id, amount, days, validated.value.policy, now)
            # Proceeds land as spendable balance whatever the card type
            self.cards.adjust_balance(user_id, card_id, amount)
            self.store.commit()
            return ServiceResult.success(loan)

        result = self._locked(user_id, "create_loan", run)
        if result.ok:
            record_loan("created", amount)
            emit_event("loans", "Loan created", {
                "user_id": user_id,
                "loan_id": result.value.loan_id,
                "amount": amount,
                "days": days,
            })
        else:
            record_loan(result.error.value)
        return result

    def repay(self, user_id: str, loan_id: str, source: str = "card_balance") -> ServiceResult[Loan]:
        """Settle a loan in full from its card's balance"""

        def run() -> ServiceResult[Loan]:
            result = self.loans.repay(user_id, loan_id, source, self.cards, self.clock())
            if result.ok:
                self.store.commit()
            return result

        result = self._locked(user_id, "repay_loan", run)
        repayment_counter.labels(outcome="paid" if result.ok else result.error.value).inc()
        if result.ok:
            emit_event("loans", "Loan repaid", {
                "user_id": user_id,
                "loan_id": loan_id,
                "amount_paid": result.value.actual_total_paid,
                "days_elapsed": result.value.days_elapsed,
            })
        return result

    def list_loans(self, user_id: str) -> ServiceResult[List[Loan]]:
        return self._locked(user_id, "list_loans", lambda: ServiceResult.success(self.loans.list(user_id)))

    def list_cards(self, user_id: str) -> ServiceResult[List[Card]]:
        """Every card the user holds, whatever its status"""
        return self._locked(user_id, "list_cards", lambda: ServiceResult.success(self.cards.list(user_id)))

    def card_details(
        self,
        user_id: str,
        card_id: Optional[str] = None,
        card_identifier: Optional[str] = None,
    ) -> ServiceResult[Card]:
        def run() -> ServiceResult[Card]:
            card = self.cards.get(user_id, self.clock(), card_id=card_id, card_identifier=card_identifier)
            if card is None:
                return ServiceResult.failure(ErrorKind.NOT_FOUND, "Card not found")
            return ServiceResult.success(card)

        return self._locked(user_id, "card_details", run)
