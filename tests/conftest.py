from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.database import Base, get_db
from app.deps import get_clock
from app.main import app
from app.models.property import Property
from app.models.user import User, UserRole
from app.services.access_policy import AccessPolicyEnforcer
from app.services.auth import AuthService
from app.services.invite_issuer import InviteIssuer
from app.services.invite_store import InviteStore
from app.services.invite_validator import InviteValidator
from app.services.rate_limiter import auth_rate_limiter, invite_rate_limiter
from app.services.redemption import RedemptionCoordinator
from app.services.token_codec import TokenCodec

SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

PASSWORD = "password123"
PASSWORD_HASH = AuthService.get_password_hash(PASSWORD)

T0 = datetime(2026, 3, 1, 12, 0, 0)


class FrozenClock:
    """Settable clock injected wherever the code asks for "now"."""

    def __init__(self, now: datetime = T0):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta: timedelta) -> None:
        self.now = self.now + delta


def override_get_db():
    try:
        db = TestingSessionLocal()
        yield db
    finally:
        db.close()


@pytest.fixture(autouse=True)
def setup_database():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def reset_rate_limiters():
    invite_rate_limiter.reset()
    auth_rate_limiter.reset()
    yield


@pytest.fixture
def clock():
    return FrozenClock()


@pytest.fixture
def db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def client(clock):
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: clock
    yield TestClient(app)
    app.dependency_overrides.clear()


def make_user(db, email, role=UserRole.TENANT, is_active=True):
    user = User(
        email=email,
        password_hash=PASSWORD_HASH,
        role=role.value,
        is_active=is_active,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def landlord(db):
    return make_user(db, "landlord@example.com", role=UserRole.LANDLORD)


@pytest.fixture
def other_landlord(db):
    return make_user(db, "other-landlord@example.com", role=UserRole.LANDLORD)


@pytest.fixture
def tenant(db):
    return make_user(db, "tenant@example.com")


@pytest.fixture
def other_tenant(db):
    return make_user(db, "other-tenant@example.com")


@pytest.fixture
def prop(db, landlord):
    p = Property(landlord_id=landlord.id, name="Maple House", address="12 Maple Road")
    db.add(p)
    db.commit()
    db.refresh(p)
    return p


@pytest.fixture
def other_prop(db, other_landlord):
    p = Property(landlord_id=other_landlord.id, name="Oak Flats", address="4 Oak Lane")
    db.add(p)
    db.commit()
    db.refresh(p)
    return p


@pytest.fixture
def codec():
    return TokenCodec()


@pytest.fixture
def policy():
    return AccessPolicyEnforcer()


@pytest.fixture
def store(db):
    return InviteStore(db)


@pytest.fixture
def issuer(store, codec, policy, clock):
    return InviteIssuer(store, codec, policy, clock=clock, link_base_url="https://app.example.com")


@pytest.fixture
def validator(store, codec, clock):
    return InviteValidator(store, codec, clock=clock)


@pytest.fixture
def coordinator(store, validator, policy, clock):
    return RedemptionCoordinator(store, validator, policy, clock=clock)


@pytest.fixture
def issued(issuer, prop, landlord):
    """A fresh invite for ``prop``; the result carries the raw token."""
    return issuer.issue(prop.id, landlord)


def get_token(client, email, password=PASSWORD):
    response = client.post(
        "/auth/login",
        data={"username": email, "password": password},
    )
    assert response.status_code == 200
    return response.json()["access_token"]


def auth_headers(client, email, password=PASSWORD):
    return {"Authorization": f"Bearer {get_token(client, email, password)}"}
