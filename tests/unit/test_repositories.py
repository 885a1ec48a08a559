"""Unit tests for the document store and repositories"""

from datetime import datetime, timedelta, timezone
import pytest
from sqlalchemy.orm import Session
from rcard_gateway.domain.models import Transaction
from rcard_gateway.infrastructure.storage.documents import DocumentStore
from rcard_gateway.infrastructure.storage.models import Document
from rcard_gateway.infrastructure.storage.repositories import (
    CardBalanceStore,
    NonceRegistry,
    OrgRepository,
    TransactionLog,
)

NOW = datetime(2026, 6, 15, 12, 0, tzinfo=timezone.utc)


def test_document_store_get_put_and_default(db: Session):
    store = DocumentStore(db)
    assert store.get("user_cards", "1") == {}
    assert store.get("user_cards", "1", {"cards": []}) == {"cards": []}

    store.put("user_cards", "1", {"cards": [{"card_id": "c1"}]})
    db.commit()

    assert store.get("user_cards", "1") == {"cards": [{"card_id": "c1"}]}


def test_document_store_returns_copies(db: Session):
    store = DocumentStore(db)
    store.put("user_cards", "1", {"cards": []})
    doc = store.get("user_cards", "1")
    doc["cards"].append("mutated")
    assert store.get("user_cards", "1") == {"cards": []}


def test_document_store_bumps_version_on_replace(db: Session):
    store = DocumentStore(db)
    store.put("user_loans", "1", {"loans": []})
    store.put("user_loans", "1", {"loans": [{"loan_id": "x"}]})
    db.commit()

    row = db.query(Document).filter_by(kind="user_loans", owner_id="1").one()
    assert row.version == 2


def test_document_store_list_by_prefix(db: Session):
    store = DocumentStore(db)
    store.put("org_cards", "org_a/card_1", {"card_id": "card_1"})
    store.put("org_cards", "org_a/card_2", {"card_id": "card_2"})
    store.put("org_cards", "org_b/card_3", {"card_id": "card_3"})
    store.put("orgs", "org_a/x", {"org_id": "org_a"})

    owners = [owner for owner, _ in store.list("org_cards", "org_a/")]
    assert owners == ["org_a/card_1", "org_a/card_2"]
    assert len(store.list("org_cards")) == 3


def test_document_store_rollback_discards_staged_writes(db: Session):
    store = DocumentStore(db)
    store.put("user_cards", "1", {"cards": []})
    db.commit()

    store.put("user_cards", "1", {"cards": [{"card_id": "staged"}]})
    store.rollback()

    assert store.get("user_cards", "1") == {"cards": []}


@pytest.mark.parametrize(
    "overrides",
    [
        {"status": "blocked"},
        {"status": "stolen"},
        {"expiry_date": "2026-06-01"},
        {"expiry_date": "2026-06-15T11:59:59+00:00"},
    ],
)
def test_card_store_hides_unusable_cards(db: Session, seed_card, overrides):
    seed_card(**overrides)
    cards = CardBalanceStore(DocumentStore(db))

    assert cards.get("1", NOW, card_id="c1") is None
    assert cards.get("1", NOW, card_identifier="RCARD-0001-0001") is None
    # Still listed for the holder
    assert [c.card_id for c in cards.list("1")] == ["c1"]


def test_card_store_get_by_id_or_identifier(db: Session, seed_card):
    seed_card()
    seed_card(card_id="c2", card_identifier="RCARD-0002-0002", card_type="debit", tier_name="Basic Debit")
    cards = CardBalanceStore(DocumentStore(db))

    assert cards.get("1", NOW, card_id="c2").card_identifier == "RCARD-0002-0002"
    assert cards.get("1", NOW, card_identifier="RCARD-0001-0001").card_id == "c1"
    assert cards.get("1", NOW, card_id="nope") is None
    assert cards.get("2", NOW, card_id="c1") is None


def test_card_with_unparseable_expiry_stays_usable(db: Session, seed_card):
    seed_card(expiry_date="someday")
    assert CardBalanceStore(DocumentStore(db)).get("1", NOW, card_id="c1") is not None


def test_adjust_and_set_balance(db: Session, seed_card):
    seed_card(current_balance=-500)
    cards = CardBalanceStore(DocumentStore(db))

    assert cards.adjust_balance("1", "c1", -100.25).current_balance == -600.25
    assert cards.set_balance("1", "c1", 42).current_balance == 42
    assert cards.adjust_balance("1", "missing", 10) is None
    assert cards.list("1")[0].current_balance == 42


def test_card_rewrite_preserves_unknown_fields(db: Session):
    store = DocumentStore(db)
    store.put("user_cards", "1", {"cards": [{
        "card_id": "c1",
        "card_identifier": "RCARD-1",
        "card_type": "credit",
        "card_name": "Premium Credit",
        "payload": {"iv": "abc", "blob": "def"},
    }]})
    cards = CardBalanceStore(store)

    card = cards.adjust_balance("1", "c1", 10)

    assert card.tier_name == "Premium Credit"
    raw = store.get("user_cards", "1")["cards"][0]
    assert raw["payload"] == {"iv": "abc", "blob": "def"}
    assert raw["current_balance"] == 10


def test_org_repository_create_and_find_by_key(db: Session):
    orgs = OrgRepository(DocumentStore(db))
    org = orgs.create_org("Arcade", NOW)

    assert org.api_key_public.startswith("pk_") and len(org.api_key_public) == 35
    assert org.api_key_secret.startswith("sk_") and len(org.api_key_secret) == 67
    assert orgs.find_by_api_key(org.api_key_public).org_id == org.org_id
    assert orgs.find_by_api_key("pk_unknown") is None
    assert orgs.get(org.org_id).name == "Arcade"


def test_transaction_log_appends(db: Session, org):
    log = TransactionLog(DocumentStore(db))
    for i in range(2):
        log.append(org.org_id, Transaction(
            transaction_id=f"txn_{i}",
            org_id=org.org_id,
            user_id="1",
            card_id="c1",
            card_identifier="RCARD-1",
            operation="charge",
            amount_credits=10,
            description="item",
            timestamp="2026-06-15T12:00:00+00:00",
            status="approved",
        ))

    assert [t["transaction_id"] for t in log.list(org.org_id)] == ["txn_0", "txn_1"]


def test_nonce_registry_rejects_reuse_within_expiry(db: Session):
    nonces = NonceRegistry(DocumentStore(db), expiry_seconds=300)

    assert nonces.check_and_mark("n1", NOW) is True
    assert nonces.check_and_mark("n1", NOW + timedelta(seconds=299)) is False
    assert nonces.check_and_mark("n2", NOW) is True


def test_nonce_registry_prunes_expired_entries(db: Session):
    store = DocumentStore(db)
    nonces = NonceRegistry(store, expiry_seconds=300)

    nonces.check_and_mark("old", NOW)
    assert nonces.check_and_mark("old", NOW + timedelta(seconds=301)) is True

    later = NOW + timedelta(seconds=1000)
    nonces.check_and_mark("fresh", later)
    entries = store.get("nonces", "global")["nonces"]
    assert [e["nonce"] for e in entries] == ["fresh"]
