"""Unit tests for loan policy resolution"""

import json
import pytest
from rcard_gateway.domain.models import Card, LoanPolicy, OrgCard
from rcard_gateway.domain.policy import PolicyCatalog, load_base_catalog, percent_to_float


def _card(**overrides) -> Card:
    values = dict(card_id="c1", card_identifier="RCARD-1", card_type="credit", tier_name="Standard Credit")
    values.update(overrides)
    return Card(**values)


@pytest.mark.parametrize("value", ["2.5%", 2.5, "2.5", " 2.5 % "])
def test_percent_to_float_normalizes(value):
    assert percent_to_float(value) == 2.5


@pytest.mark.parametrize("value", ["abc", None, "", "%"])
def test_percent_to_float_garbage_is_zero(value):
    assert percent_to_float(value) == 0.0


def test_resolve_base_tier(catalog: PolicyCatalog):
    policy = catalog.resolve(_card())

    assert policy == LoanPolicy(
        loan_enabled=True,
        loan_max_amount=2000.0,
        loan_max_year=5000.0,
        loan_interest_rate_monthly=2.0,
        loan_min_wait_days=7,
        loan_max_days=90,
    )


def test_resolve_normalizes_percent_string_from_catalog(catalog: PolicyCatalog):
    """Premium Debit stores its rate as "2.5%" """
    policy = catalog.resolve(_card(card_type="debit", tier_name="Premium Debit"))
    assert policy.loan_interest_rate_monthly == 2.5


def test_resolve_disabled_tier_uses_system_defaults(catalog: PolicyCatalog):
    policy = catalog.resolve(_card(card_type="debit", tier_name="Basic Debit"))

    assert policy.loan_enabled is False
    assert policy.loan_max_amount == 0
    assert policy.loan_min_wait_days == 7
    assert policy.loan_max_days == 180


def test_resolve_unknown_tier_is_fully_disabled(catalog: PolicyCatalog):
    policy = catalog.resolve(_card(tier_name="Platinum Unicorn"))
    assert policy == LoanPolicy.disabled(min_wait_days=7, max_days=180)


def test_tier_lookup_is_scoped_by_card_type(catalog: PolicyCatalog):
    policy = catalog.resolve(_card(card_type="debit", tier_name="Standard Credit"))
    assert policy.loan_enabled is False


def test_org_policy_wins_without_merge(catalog: PolicyCatalog):
    org_card = OrgCard(
        card_id="oc1",
        org_id="org1",
        name="Guild Credit",
        loan_policy={"loan_enabled": True, "loan_max_amount": 300, "loan_interest_rate_monthly": "3%"},
    )
    card = _card(org_id="org1", org_card_id="oc1")

    policy = catalog.resolve(card, org_card)

    assert policy.loan_max_amount == 300
    assert policy.loan_interest_rate_monthly == 3.0
    # Missing keys take system defaults, not the Standard Credit tier values
    assert policy.loan_max_year == 0
    assert policy.loan_max_days == 180


def test_org_card_without_policy_falls_back_to_tier(catalog: PolicyCatalog):
    org_card = OrgCard(card_id="oc1", org_id="org1", name="Guild Credit")
    policy = catalog.resolve(_card(org_id="org1", org_card_id="oc1"), org_card)
    assert policy.loan_max_amount == 2000


def test_org_policy_ignored_for_card_without_org_reference(catalog: PolicyCatalog):
    org_card = OrgCard(card_id="oc1", org_id="org1", name="X", loan_policy={"loan_enabled": False})
    policy = catalog.resolve(_card(org_id="org1"), org_card)
    assert policy.loan_enabled is True


def test_catalog_is_read_only():
    catalog = load_base_catalog()
    with pytest.raises(TypeError):
        catalog["credit"]["Standard Credit"]["loan_max_amount"] = 10**9
    with pytest.raises(TypeError):
        catalog["gold"] = {}


def test_load_base_catalog_from_file(tmp_path):
    path = tmp_path / "base_cards.json"
    path.write_text(json.dumps({"credit": {"Tiny Credit": {"loan_enabled": True, "loan_max_amount": 150}}}))

    catalog = PolicyCatalog(load_base_catalog(str(path)), default_min_wait_days=3, default_max_days=30)
    policy = catalog.resolve(_card(tier_name="Tiny Credit"))

    assert policy.loan_max_amount == 150
    assert policy.loan_min_wait_days == 3
    assert policy.loan_max_days == 30
