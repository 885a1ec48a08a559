"""Organization charge processing: request authentication, then card debit"""

import logging
import uuid
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any, Callable, Dict, Mapping, Optional

from sqlalchemy.orm import Session

from rcard_gateway.config import settings
from rcard_gateway.domain.exceptions import ErrorKind, LockTimeoutError, PersistenceError
from rcard_gateway.domain.models import Card, Organization, Transaction
from rcard_gateway.infrastructure.locks import (
    NONCE_LOCK,
    KeyedLockRegistry,
    lock_registry,
    org_lock_key,
    user_lock_key,
)
from rcard_gateway.infrastructure.observability.logging import emit_event
from rcard_gateway.infrastructure.observability.metrics import charge_counter
from rcard_gateway.infrastructure.security.signatures import timestamp_within_drift, verify_signature
from rcard_gateway.infrastructure.storage.documents import DocumentStore
from rcard_gateway.infrastructure.storage.repositories import (
    CardBalanceStore,
    NonceRegistry,
    OrgRepository,
    TransactionLog,
)
from rcard_gateway.utils.date_utils import format_timestamp, utcnow

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = (
    "api_key_public",
    "nonce",
    "timestamp",
    "signature",
    "operation",
    "card_identifier",
    "user_id",
    "amount_credits",
    "description",
)


@dataclass
class ChargeResult:
    """Outcome of a charge request"""

    status: str  # "approved", "declined" or "rejected"
    reason: Optional[str] = None
    error: Optional[ErrorKind] = None
    transaction_id: Optional[str] = None
    amount_charged: Optional[float] = None
    new_balance: Optional[float] = None
    available_credit: Optional[float] = None
    available_balance: Optional[float] = None

    def to_response(self) -> Dict[str, Any]:
        return {k: v for k, v in asdict(self).items() if v is not None and k != "error"}


def _rejected(error: ErrorKind, reason: str) -> ChargeResult:
    return ChargeResult(status="rejected", reason=reason, error=error)


def decide_charge(card: Card, amount: float) -> ChargeResult:
    """
    Approve or decline a charge against a card, without touching storage.

    Credit cards may spend up to credit_limit - |balance|; debit cards up
    to their balance. Either way an approved charge lowers the balance.
    """
    if card.card_type == "credit":
        available_credit = card.credit_limit - abs(card.current_balance)
        if amount > available_credit:
            return ChargeResult(status="declined", reason="Credit limit exceeded", available_credit=available_credit)
    elif amount > card.current_balance:
        return ChargeResult(status="declined", reason="Insufficient funds", available_balance=card.current_balance)

    return ChargeResult(status="approved", amount_charged=amount, new_balance=card.current_balance - amount)


class PaymentChargeService:
    """Debits or declines card charges submitted by partner organizations"""

    def __init__(
        self,
        db: Session,
        locks: KeyedLockRegistry = lock_registry,
        clock: Callable[[], datetime] = utcnow,
        max_time_drift: int | None = None,
        nonce_expiry: int | None = None,
        record_declined: bool | None = None,
    ):
        self.store = DocumentStore(db)
        self.locks = locks
        self.clock = clock
        self.max_time_drift = settings.org_max_time_drift if max_time_drift is None else max_time_drift
        self.record_declined = settings.record_declined_charges if record_declined is None else record_declined
        self.orgs = OrgRepository(self.store)
        self.cards = CardBalanceStore(self.store)
        self.transactions = TransactionLog(self.store)
        self.nonces = NonceRegistry(
            self.store,
            settings.org_nonce_expiry if nonce_expiry is None else nonce_expiry,
        )

    def process(self, body: Mapping[str, Any]) -> ChargeResult:
        """
        Authenticate and execute a charge request.

        Authentication failures reject the request before any balance is read.
        """
        try:
            result = self._process(body)
        except LockTimeoutError:
            result = _rejected(ErrorKind.PERSISTENCE_FAILURE, "Service busy, try again")
        except PersistenceError as e:
            logger.error(f"Payment API persistence failure: {e}", extra={"api_key": body.get("api_key_public")})
            result = _rejected(ErrorKind.PERSISTENCE_FAILURE, "Internal server error")
        finally:
            self.store.rollback()

        charge_counter.labels(outcome=result.status).inc()
        return result

    def authenticate(self, body: Mapping[str, Any], now: datetime) -> tuple[Optional[Organization], Optional[ChargeResult]]:
        """Org lookup, status, timestamp drift, signature, then single-use nonce"""
        org = self.orgs.find_by_api_key(str(body["api_key_public"]))
        if org is None:
            emit_event("payment_api", "Invalid API key", {"api_key": body["api_key_public"]})
            return None, _rejected(ErrorKind.AUTHENTICATION_FAILED, "Invalid API key")

        if not org.is_active:
            emit_event("payment_api", "Inactive organization", {"org_id": org.org_id})
            return None, _rejected(ErrorKind.AUTHENTICATION_FAILED, "Organization not active")

        if not timestamp_within_drift(body["timestamp"], now.timestamp(), self.max_time_drift):
            emit_event("payment_api", "Invalid timestamp", {"org_id": org.org_id, "timestamp": body["timestamp"]})
            return None, _rejected(ErrorKind.AUTHENTICATION_FAILED, "Invalid timestamp")

        if not verify_signature(org.api_key_secret, body):
            emit_event("payment_api", "Invalid signature", {"org_id": org.org_id})
            return None, _rejected(ErrorKind.AUTHENTICATION_FAILED, "Invalid signature")

        with self.locks.hold(NONCE_LOCK):
            fresh = self.nonces.check_and_mark(str(body["nonce"]), now)
            if fresh:
                self.store.commit()
            else:
                self.store.rollback()

        if not fresh:
            emit_event("payment_api", "Nonce already used", {"org_id": org.org_id, "nonce": body["nonce"]})
            return None, _rejected(ErrorKind.AUTHENTICATION_FAILED, "Nonce already used")

        return org, None

    def _process(self, body: Mapping[str, Any]) -> ChargeResult:
        for field_name in REQUIRED_FIELDS:
            if field_name not in body:
                return _rejected(ErrorKind.VALIDATION_FAILED, f"Missing field: {field_name}")

        now = self.clock()
        org, rejection = self.authenticate(body, now)
        if rejection is not None:
            return rejection

        if body["operation"] != "charge":
            return _rejected(ErrorKind.VALIDATION_FAILED, "Invalid operation")

        try:
            amount = float(body["amount_credits"])
        except (TypeError, ValueError):
            amount = 0.0
        if not amount > 0:
            return ChargeResult(status="declined", reason="Invalid amount", error=ErrorKind.VALIDATION_FAILED)

        user_id = str(body["user_id"])
        card_identifier = str(body["card_identifier"])

        # Lock order: user, then org
        with self.locks.hold(user_lock_key(user_id)), self.locks.hold(org_lock_key(org.org_id)):
            return self._charge(org, user_id, card_identifier, amount, str(body["description"]), now)

    def _charge(
        self,
        org: Organization,
        user_id: str,
        card_identifier: str,
        amount: float,
        description: str,
        now: datetime,
    ) -> ChargeResult:
        context = {"org_id": org.org_id, "user_id": user_id, "card_identifier": card_identifier, "amount": amount}

        card = self.cards.get(user_id, now, card_identifier=card_identifier)
        if card is None:
            result = ChargeResult(status="declined", reason="Card not found or invalid", error=ErrorKind.NOT_FOUND)
        else:
            context["card_id"] = card.card_id
            result = decide_charge(card, amount)

        if result.status == "approved":
            updated = self.cards.set_balance(user_id, card.card_id, result.new_balance)
            result.new_balance = updated.current_balance
        elif not self.record_declined:
            self.store.rollback()
            emit_event("payment_api", result.reason, context)
            return result

        transaction = Transaction(
            transaction_id=f"txn_{uuid.uuid4().hex}",
            org_id=org.org_id,
            user_id=user_id,
            card_id=card.card_id if card is not None else None,
            card_identifier=card_identifier,
            operation="charge",
            amount_credits=amount,
            description=description,
            timestamp=format_timestamp(now),
            status=result.status,
            reason=result.reason,
            new_balance=result.new_balance,
        )
        self.transactions.append(org.org_id, transaction)
        self.store.commit()

        result.transaction_id = transaction.transaction_id
        emit_event(
            "payment_api",
            "Transaction approved" if result.status == "approved" else result.reason,
            {**context, "transaction_id": transaction.transaction_id},
        )
        return result
