"""Domain models - pure Python dataclasses representing business entities"""

from dataclasses import asdict, dataclass, field, fields
from datetime import datetime
from typing import Any, Dict, Generic, Optional, TypeVar

from rcard_gateway.domain.exceptions import ErrorKind
from rcard_gateway.utils.date_utils import parse_timestamp

T = TypeVar("T")


def _known_fields(cls) -> set:
    return {f.name for f in fields(cls)}


@dataclass
class Card:
    """User-owned virtual card; source of truth for balance and status"""

    card_id: str
    card_identifier: str
    card_type: str  # "credit" or "debit"
    tier_name: str
    current_balance: float = 0.0
    credit_limit: float = 0.0
    status: str = "active"  # "active", "blocked" or "stolen"
    expiry_date: Optional[str] = None
    issued_date: Optional[str] = None
    org_id: Optional[str] = None
    org_card_id: Optional[str] = None
    # Fields we do not interpret (e.g. encrypted payload) survive a rewrite
    extra: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_org_card(self) -> bool:
        return bool(self.org_id) and bool(self.org_card_id)

    def is_usable(self, now: datetime) -> bool:
        """Active and not past expiry; anything else is treated as absent"""
        if self.status != "active":
            return False
        expiry = parse_timestamp(self.expiry_date)
        return expiry is None or now <= expiry

    def to_document(self) -> Dict[str, Any]:
        doc = dict(self.extra)
        doc.update({k: v for k, v in asdict(self).items() if k != "extra"})
        return doc

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "Card":
        known = _known_fields(cls) - {"extra"}
        values = {k: v for k, v in doc.items() if k in known}
        # Older rows name the tier "card_name"
        values.setdefault("tier_name", doc.get("card_name", ""))
        values.setdefault("card_type", "debit")
        values.setdefault("card_identifier", "")
        values["current_balance"] = float(values.get("current_balance") or 0)
        values["credit_limit"] = float(values.get("credit_limit") or 0)
        values["status"] = values.get("status") or "active"
        extra = {k: v for k, v in doc.items() if k not in known}
        return cls(extra=extra, **values)

    def public_view(self) -> Dict[str, Any]:
        """Fields safe to return to the card holder"""
        return {
            "card_id": self.card_id,
            "card_identifier": self.card_identifier,
            "card_type": self.card_type,
            "tier_name": self.tier_name,
            "current_balance": self.current_balance,
            "credit_limit": self.credit_limit,
            "status": self.status,
            "expiry_date": self.expiry_date,
            "issued_date": self.issued_date,
        }


@dataclass(frozen=True)
class LoanPolicy:
    """Loan terms derived for a card at request time (never stored per loan)"""

    loan_enabled: bool
    loan_max_amount: float
    loan_max_year: float
    loan_interest_rate_monthly: float  # Percent, 2.0 == 2%
    loan_min_wait_days: int
    loan_max_days: int

    @classmethod
    def disabled(cls, min_wait_days: int, max_days: int) -> "LoanPolicy":
        return cls(
            loan_enabled=False,
            loan_max_amount=0.0,
            loan_max_year=0.0,
            loan_interest_rate_monthly=0.0,
            loan_min_wait_days=min_wait_days,
            loan_max_days=max_days,
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class InterestBreakdown:
    """Simple daily interest for a principal over a day count"""

    daily_rate: float
    interest_min_wait: float
    interest_selected: float
    total_due: float


@dataclass
class Loan:
    """Loan record; created active, settled exactly once"""

    loan_id: str
    card_id: str
    amount: float
    days: int
    interest_rate_monthly: float
    interest_amount: float
    total_due: float
    min_wait_days: int
    created_at: str
    due_date: str
    status: str = "active"  # "active" or "paid"
    paid_at: Optional[str] = None
    actual_interest: Optional[float] = None
    actual_total_paid: Optional[float] = None
    days_elapsed: Optional[int] = None
    repayment_source: Optional[str] = None

    @property
    def is_paid(self) -> bool:
        return self.status == "paid"

    def to_document(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "Loan":
        known = _known_fields(cls)
        return cls(**{k: v for k, v in doc.items() if k in known})


@dataclass
class Organization:
    """Partner organization allowed to charge cards through the payment API"""

    org_id: str
    name: str
    api_key_public: str
    api_key_secret: str
    status: str = "active"  # "active" or "suspended"
    created_at: Optional[str] = None

    @property
    def is_active(self) -> bool:
        return self.status == "active"

    def to_document(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "Organization":
        known = _known_fields(cls)
        return cls(**{k: v for k, v in doc.items() if k in known})


@dataclass
class OrgCard:
    """Organization-defined card product; may override the base loan policy"""

    card_id: str
    org_id: str
    name: str
    card_type: str = "credit"
    public_identifier: Optional[str] = None
    credit_limit: float = 0.0
    loan_policy: Optional[Dict[str, Any]] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    def to_document(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "OrgCard":
        known = _known_fields(cls)
        return cls(**{k: v for k, v in doc.items() if k in known})


@dataclass(frozen=True)
class Transaction:
    """Append-only record of a charge outcome"""

    transaction_id: str
    org_id: str
    user_id: str
    card_id: Optional[str]
    card_identifier: str
    operation: str
    amount_credits: float
    description: str
    timestamp: str
    status: str  # "approved" or "declined"
    reason: Optional[str] = None
    new_balance: Optional[float] = None

    def to_document(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ServiceResult(Generic[T]):
    """Outcome of a service operation; business failures are values, not faults"""

    ok: bool
    value: Optional[T] = None
    error: Optional[ErrorKind] = None
    reason: Optional[str] = None

    @classmethod
    def success(cls, value: T) -> "ServiceResult[T]":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, error: ErrorKind, reason: str) -> "ServiceResult[T]":
        return cls(ok=False, error=error, reason=reason)
