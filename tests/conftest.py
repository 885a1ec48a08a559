"""Pytest fixtures for testing"""

import pytest
from datetime import datetime, timedelta, timezone
from typing import Callable, Generator
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from rcard_gateway.api.main import create_app
from rcard_gateway.domain.models import Card, Organization
from rcard_gateway.domain.policy import PolicyCatalog, load_base_catalog
from rcard_gateway.infrastructure.locks import KeyedLockRegistry
from rcard_gateway.infrastructure.storage.documents import DocumentStore
from rcard_gateway.infrastructure.storage.models import Base
from rcard_gateway.infrastructure.storage.repositories import CardBalanceStore, OrgCardCatalog, OrgRepository
from rcard_gateway.infrastructure.storage.session import get_db
from rcard_gateway.services.loan_service import LoanService
from rcard_gateway.services.payment_service import PaymentChargeService

USER_ID = "1"
ORG_SECRET = "sk_test_secret"
ORG_PUBLIC = "pk_test_public"


class FrozenClock:
    """Controllable clock for time-dependent ledger rules"""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def session_factory(tmp_path) -> Generator[sessionmaker, None, None]:
    """Fresh SQLite database per test; one session per thread when needed"""
    engine = create_engine(f"sqlite:///{tmp_path / 'test.db'}", connect_args={"check_same_thread": False})
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(session_factory) -> Generator[Session, None, None]:
    """Create test database and session"""
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(datetime(2026, 6, 15, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def locks() -> KeyedLockRegistry:
    return KeyedLockRegistry(timeout=2.0)


@pytest.fixture
def catalog() -> PolicyCatalog:
    return PolicyCatalog(load_base_catalog(), default_min_wait_days=7, default_max_days=180)


def make_card(**overrides) -> Card:
    values = dict(
        card_id="c1",
        card_identifier="RCARD-0001-0001",
        card_type="credit",
        tier_name="Standard Credit",
        current_balance=0.0,
        credit_limit=5000.0,
        status="active",
        expiry_date="2099-12-31",
    )
    values.update(overrides)
    return Card(**values)


@pytest.fixture
def seed_card(db: Session) -> Callable[..., Card]:
    """Store a card for USER_ID (or user_id=...) and commit"""

    def seed(user_id: str = USER_ID, **overrides) -> Card:
        card = make_card(**overrides)
        CardBalanceStore(DocumentStore(db)).add_card(user_id, card)
        db.commit()
        return card

    return seed


@pytest.fixture
def org(db: Session) -> Organization:
    """Active organization with known keys"""
    organization = Organization(
        org_id="org_test",
        name="Test Games",
        api_key_public=ORG_PUBLIC,
        api_key_secret=ORG_SECRET,
        created_at="2026-01-01T00:00:00+00:00",
    )
    OrgRepository(DocumentStore(db)).save(organization)
    db.commit()
    return organization


@pytest.fixture
def seed_org_card(db: Session, org: Organization):
    def seed(loan_policy=None, **fields):
        fields.setdefault("name", "Guild Credit")
        fields["loan_policy"] = loan_policy
        card = OrgCardCatalog(DocumentStore(db)).create(org.org_id, fields, datetime.now(timezone.utc))
        db.commit()
        return card

    return seed


@pytest.fixture
def loan_service(db: Session, catalog: PolicyCatalog, locks: KeyedLockRegistry, clock: FrozenClock) -> LoanService:
    return LoanService(db, catalog, locks=locks, clock=clock, min_amount=100)


@pytest.fixture
def payment_service(db: Session, locks: KeyedLockRegistry, clock: FrozenClock) -> PaymentChargeService:
    return PaymentChargeService(db, locks=locks, clock=clock, max_time_drift=15, nonce_expiry=300, record_declined=True)


@pytest.fixture
def client(db: Session) -> TestClient:
    """Create FastAPI test client with test database"""
    app = create_app()

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    return TestClient(app)
