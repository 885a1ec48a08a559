"""Data access layer for cards, loans, organizations and nonces"""

import secrets
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from rcard_gateway.domain.exceptions import ErrorKind
from rcard_gateway.domain.interest import round_credits
from rcard_gateway.domain.ledger import build_loan, settle_loan, sum_active_for_year
from rcard_gateway.domain.models import (
    Card,
    Loan,
    LoanPolicy,
    Organization,
    OrgCard,
    ServiceResult,
    Transaction,
)
from rcard_gateway.infrastructure.storage.documents import (
    NONCES,
    ORG_CARDS,
    ORG_TRANSACTIONS,
    ORGS,
    USER_CARDS,
    USER_LOANS,
    DocumentStore,
)
from rcard_gateway.utils.date_utils import format_timestamp


class CardBalanceStore:
    """Repository for a user's cards; the source of truth for balances"""

    def __init__(self, store: DocumentStore):
        self.store = store

    def list(self, user_id: str) -> List[Card]:
        doc = self.store.get(USER_CARDS, user_id, {"cards": []})
        return [Card.from_document(row) for row in doc.get("cards", [])]

    def save(self, user_id: str, cards: List[Card]) -> None:
        self.store.put(USER_CARDS, user_id, {"cards": [c.to_document() for c in cards]})

    def get(
        self,
        user_id: str,
        now: datetime,
        card_id: str | None = None,
        card_identifier: str | None = None,
    ) -> Optional[Card]:
        """
        Fetch a usable card by internal id or external identifier.

        Blocked, stolen and expired cards come back as None, same as a card
        that does not exist.
        """
        for card in self.list(user_id):
            if (card_id is not None and card.card_id == card_id) or (
                card_identifier is not None and card.card_identifier == card_identifier
            ):
                return card if card.is_usable(now) else None
        return None

    def add_card(self, user_id: str, card: Card) -> None:
        cards = self.list(user_id)
        cards.append(card)
        self.save(user_id, cards)

    def _mutate(self, user_id: str, card_id: str, mutate) -> Optional[Card]:
        cards = self.list(user_id)
        for card in cards:
            if card.card_id == card_id:
                mutate(card)
                self.save(user_id, cards)
                return card
        return None

    def adjust_balance(self, user_id: str, card_id: str, delta: float) -> Optional[Card]:
        """Add delta to current_balance; None if the user has no such card"""

        def apply(card: Card) -> None:
            card.current_balance = round_credits(card.current_balance + delta)

        return self._mutate(user_id, card_id, apply)

    def set_balance(self, user_id: str, card_id: str, balance: float) -> Optional[Card]:
        def apply(card: Card) -> None:
            card.current_balance = round_credits(balance)

        return self._mutate(user_id, card_id, apply)


class LoanLedger:
    """Repository for a user's loans"""

    def __init__(self, store: DocumentStore, year_cap_counts_paid: bool = False):
        self.store = store
        self.year_cap_counts_paid = year_cap_counts_paid

    def list(self, user_id: str) -> List[Loan]:
        doc = self.store.get(USER_LOANS, user_id, {"loans": []})
        return [Loan.from_document(row) for row in doc.get("loans", [])]

    def save(self, user_id: str, loans: List[Loan]) -> None:
        self.store.put(USER_LOANS, user_id, {"loans": [loan.to_document() for loan in loans]})

    def get(self, user_id: str, loan_id: str) -> Optional[Loan]:
        return next((loan for loan in self.list(user_id) if loan.loan_id == loan_id), None)

    def sum_active_for_year(self, user_id: str, card_id: str, now: datetime) -> float:
        return sum_active_for_year(
            self.list(user_id),
            card_id,
            now,
            include_paid=self.year_cap_counts_paid,
        )

    def create(
        self,
        user_id: str,
        card_id: str,
        amount: float,
        days: int,
        policy: LoanPolicy,
        now: datetime,
    ) -> Loan:
        """Price and append a loan priced at the contracted days"""
        loan = build_loan(card_id, amount, days, policy, now)
        loans = self.list(user_id)
        loans.append(loan)
        self.save(user_id, loans)
        return loan

    def repay(
        self,
        user_id: str,
        loan_id: str,
        source: str,
        cards: CardBalanceStore,
        now: datetime,
    ) -> ServiceResult[Loan]:
        """
        Settle a loan from the linked card balance.

        Stages the card debit and the paid loan in the same unit of work. The
        caller commits; if either write fails nothing is kept.
        """
        loans = self.list(user_id)
        index = next((i for i, loan in enumerate(loans) if loan.loan_id == loan_id), None)
        if index is None:
            return ServiceResult.failure(ErrorKind.NOT_FOUND, "Loan not found")

        loan = loans[index]
        if loan.is_paid:
            return ServiceResult.failure(ErrorKind.ALREADY_SETTLED, "Loan already paid")

        settled = settle_loan(loan, now, source)

        if cards.adjust_balance(user_id, loan.card_id, -settled.actual_total_paid) is None:
            return ServiceResult.failure(ErrorKind.NOT_FOUND, "Card not found")

        loans[index] = settled
        self.save(user_id, loans)
        return ServiceResult.success(settled)


def generate_api_keys() -> Dict[str, str]:
    """Fresh public/secret key pair for an organization"""
    return {
        "public": f"pk_{secrets.token_hex(16)}",
        "secret": f"sk_{secrets.token_hex(32)}",
    }


class OrgRepository:
    """Repository for partner organizations"""

    def __init__(self, store: DocumentStore):
        self.store = store

    def get(self, org_id: str) -> Optional[Organization]:
        doc = self.store.get(ORGS, org_id)
        return Organization.from_document(doc) if doc else None

    def save(self, org: Organization) -> None:
        self.store.put(ORGS, org.org_id, org.to_document())

    def create_org(self, name: str, now: datetime) -> Organization:
        keys = generate_api_keys()
        org = Organization(
            org_id=f"org_{uuid.uuid4().hex[:12]}",
            name=name,
            api_key_public=keys["public"],
            api_key_secret=keys["secret"],
            created_at=format_timestamp(now),
        )
        self.save(org)
        return org

    def rotate_keys(self, org: Organization) -> Organization:
        """Replace the key pair; the old pair stops authenticating at once"""
        keys = generate_api_keys()
        org.api_key_public = keys["public"]
        org.api_key_secret = keys["secret"]
        self.save(org)
        return org

    def find_by_api_key(self, api_key_public: str) -> Optional[Organization]:
        for _, doc in self.store.list(ORGS):
            if doc.get("api_key_public") == api_key_public:
                return Organization.from_document(doc)
        return None


class OrgCardCatalog:
    """Repository for organization card products"""

    def __init__(self, store: DocumentStore):
        self.store = store

    @staticmethod
    def _key(org_id: str, card_id: str) -> str:
        return f"{org_id}/{card_id}"

    def get(self, org_id: str, card_id: str) -> Optional[OrgCard]:
        doc = self.store.get(ORG_CARDS, self._key(org_id, card_id))
        return OrgCard.from_document(doc) if doc else None

    def list(self, org_id: str) -> List[OrgCard]:
        return [OrgCard.from_document(doc) for _, doc in self.store.list(ORG_CARDS, f"{org_id}/")]

    @staticmethod
    def _build(card_id: str, org_id: str, fields: Dict[str, Any]) -> OrgCard:
        return OrgCard(
            card_id=card_id,
            org_id=org_id,
            name=fields["name"],
            card_type=fields.get("card_type", "credit"),
            public_identifier=fields.get("public_identifier"),
            credit_limit=float(fields.get("credit_limit") or 0),
            loan_policy=fields.get("loan_policy"),
        )

    def create(self, org_id: str, fields: Dict[str, Any], now: datetime) -> OrgCard:
        card = self._build(f"card_{uuid.uuid4().hex[:16]}", org_id, fields)
        card.created_at = format_timestamp(now)
        self.store.put(ORG_CARDS, self._key(org_id, card.card_id), card.to_document())
        return card

    def update(self, org_id: str, card_id: str, fields: Dict[str, Any], now: datetime) -> Optional[OrgCard]:
        """
        Replace a card product's definition; None if it does not exist.

        Loans already taken on the card keep the terms they were priced with.
        """
        existing = self.get(org_id, card_id)
        if existing is None:
            return None

        card = self._build(card_id, org_id, fields)
        card.created_at = existing.created_at
        card.updated_at = format_timestamp(now)
        self.store.put(ORG_CARDS, self._key(org_id, card_id), card.to_document())
        return card

    def delete(self, org_id: str, card_id: str) -> bool:
        return self.store.delete(ORG_CARDS, self._key(org_id, card_id))

    def find_by_public_identifier(self, org_id: str, public_identifier: str) -> Optional[OrgCard]:
        return next((c for c in self.list(org_id) if c.public_identifier == public_identifier), None)


class TransactionLog:
    """Append-only charge log per organization"""

    def __init__(self, store: DocumentStore):
        self.store = store

    def list(self, org_id: str) -> List[Dict[str, Any]]:
        return self.store.get(ORG_TRANSACTIONS, org_id, {"transactions": []}).get("transactions", [])

    def append(self, org_id: str, transaction: Transaction) -> None:
        transactions = self.list(org_id)
        transactions.append(transaction.to_document())
        self.store.put(ORG_TRANSACTIONS, org_id, {"transactions": transactions})


class NonceRegistry:
    """Single-use nonce table shared by all organizations"""

    OWNER = "global"

    def __init__(self, store: DocumentStore, expiry_seconds: int):
        self.store = store
        self.expiry_seconds = expiry_seconds

    def check_and_mark(self, nonce: str, now: datetime) -> bool:
        """
        Mark a nonce as used; False if it was already used within the expiry window.

        Not atomic on its own: callers hold the nonce lock across this call and
        the commit that follows.
        """
        now_ts = int(now.timestamp())
        cutoff = now_ts - self.expiry_seconds
        entries = self.store.get(NONCES, self.OWNER, {"nonces": []}).get("nonces", [])

        # Drop expired entries
        live = [e for e in entries if e.get("timestamp", 0) > cutoff]

        if any(e.get("nonce") == nonce for e in live):
            return False

        live.append({"nonce": nonce, "timestamp": now_ts})
        self.store.put(NONCES, self.OWNER, {"nonces": live})
        return True
