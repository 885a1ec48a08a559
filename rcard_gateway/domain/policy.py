"""Loan policy resolution: organization override over the base tier catalog"""

import json
import logging
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping, Optional

from rcard_gateway.domain.models import Card, LoanPolicy, OrgCard

logger = logging.getLogger(__name__)

# Built-in tier catalog: {card_type: {tier_name: entry}}
DEFAULT_BASE_CATALOG: dict[str, dict[str, dict[str, Any]]] = {
    "credit": {
        "Standard Credit": {
            "credit_limit": 5000,
            "interest_rate_monthly": 1.5,
            "loan_enabled": True,
            "loan_max_amount": 2000,
            "loan_max_year": 5000,
            "loan_interest_rate_monthly": 2.0,
            "loan_min_wait_days": 7,
            "loan_max_days": 90,
        },
        "Premium Credit": {
            "credit_limit": 15000,
            "interest_rate_monthly": 1.2,
            "loan_enabled": True,
            "loan_max_amount": 5000,
            "loan_max_year": 15000,
            "loan_interest_rate_monthly": 1.8,
            "loan_min_wait_days": 7,
            "loan_max_days": 120,
        },
        "Elite Credit": {
            "credit_limit": 50000,
            "interest_rate_monthly": 0.9,
            "loan_enabled": True,
            "loan_max_amount": 15000,
            "loan_max_year": 40000,
            "loan_interest_rate_monthly": 1.5,
            "loan_min_wait_days": 7,
            "loan_max_days": 180,
        },
    },
    "debit": {
        "Basic Debit": {
            "loan_enabled": False,
        },
        "Premium Debit": {
            "loan_enabled": True,
            "loan_max_amount": 1000,
            "loan_max_year": 3000,
            "loan_interest_rate_monthly": "2.5%",
            "loan_min_wait_days": 7,
            "loan_max_days": 60,
        },
    },
}


def percent_to_float(value: Any) -> float:
    """Normalize 2.5, "2.5" and "2.5%" to 2.5; anything unparseable is 0.0"""
    if isinstance(value, str):
        value = value.strip().rstrip("%").strip()
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def _as_number(value: Any, default: float, cast=float):
    try:
        return cast(value)
    except (TypeError, ValueError):
        return cast(default)


def _freeze(catalog: Mapping[str, Mapping[str, Mapping[str, Any]]]) -> Mapping:
    return MappingProxyType({
        card_type: MappingProxyType({
            tier: MappingProxyType(dict(entry)) for tier, entry in tiers.items()
        })
        for card_type, tiers in catalog.items()
    })


def load_base_catalog(path: str | None = None) -> Mapping:
    """
    Load the base tier catalog once at startup.

    Reads the JSON file at `path` when given, otherwise the built-in catalog.
    The result is read-only.
    """
    if path is None:
        return _freeze(DEFAULT_BASE_CATALOG)

    raw = json.loads(Path(path).read_text(encoding="utf-8"))
    logger.info("Loaded base card catalog", extra={"path": path, "card_types": sorted(raw)})
    return _freeze(raw)


class PolicyCatalog:
    """Resolves the loan policy that applies to a card"""

    def __init__(self, base_catalog: Mapping, default_min_wait_days: int, default_max_days: int):
        self.base_catalog = base_catalog
        self.default_min_wait_days = default_min_wait_days
        self.default_max_days = default_max_days

    def normalize(self, raw: Mapping[str, Any]) -> LoanPolicy:
        """Build a LoanPolicy from a stored mapping, filling system defaults"""
        return LoanPolicy(
            loan_enabled=bool(raw.get("loan_enabled", False)),
            loan_max_amount=_as_number(raw.get("loan_max_amount"), 0),
            loan_max_year=_as_number(raw.get("loan_max_year"), 0),
            loan_interest_rate_monthly=percent_to_float(raw.get("loan_interest_rate_monthly", 0)),
            loan_min_wait_days=_as_number(raw.get("loan_min_wait_days"), self.default_min_wait_days, int),
            loan_max_days=_as_number(raw.get("loan_max_days"), self.default_max_days, int),
        )

    def lookup_tier(self, card_type: str, tier_name: str) -> Optional[Mapping[str, Any]]:
        return self.base_catalog.get(card_type, {}).get(tier_name)

    def resolve(self, card: Card, org_card: Optional[OrgCard] = None) -> LoanPolicy:
        """
        Resolve the policy for a card.

        Precedence:
        1. Org card policy, when the card is org-issued and the org card defines one
        2. Base tier entry for (card_type, tier_name)
        3. Fully disabled policy
        """
        if card.is_org_card and org_card is not None and org_card.loan_policy:
            return self.normalize(org_card.loan_policy)

        entry = self.lookup_tier(card.card_type, card.tier_name)
        if entry is None:
            return LoanPolicy.disabled(self.default_min_wait_days, self.default_max_days)

        return self.normalize(entry)
