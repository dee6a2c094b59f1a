"""Shared fixtures: in-memory SQLite store, factories and an API client."""

import os

# Must be set before backend.models builds its engine
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.pop("ALLOW_MULTIPLE_WAGERS", None)
for _var in ("TWILIO_ACCOUNT_SID", "TWILIO_AUTH_TOKEN", "TWILIO_VERIFY_SID"):
    os.environ.pop(_var, None)

from datetime import datetime, timedelta

import pytest

from backend.models import Base, Monkey, Prop, Wager, SessionLocal, engine


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def make_monkey(db):
    counter = {"n": 0}

    def _make(phone=None, verified=True):
        counter["n"] += 1
        monkey = Monkey(phone=phone or f"+1555900{counter['n']:04d}", phone_verified=verified)
        db.add(monkey)
        db.commit()
        db.refresh(monkey)
        return monkey

    return _make


@pytest.fixture
def make_prop(db):
    """Insert a prop directly, bypassing the future-expiry check."""

    def _make(creator, name="Will it rain?", expires_in=timedelta(days=1),
              result=None, deleted=False, created_at=None):
        now = datetime.utcnow()
        prop = Prop(
            name=name,
            creator_id=creator.id,
            expiry_date=now + expires_in,
            result=result,
            deleted_at=now if deleted else None,
            created_at=created_at or now,
        )
        db.add(prop)
        db.commit()
        db.refresh(prop)
        return prop

    return _make


@pytest.fixture
def make_wager(db):
    def _make(prop, bettor, prediction=True, bananas=10, created_at=None):
        wager = Wager(
            prop_id=prop.id,
            bettor_id=bettor.id,
            prediction=prediction,
            bananas=bananas,
            created_at=created_at or datetime.utcnow(),
        )
        db.add(wager)
        db.commit()
        db.refresh(wager)
        return wager

    return _make


# ---------------------------------------------------------------------------
# API
# ---------------------------------------------------------------------------

class FakeVerifier:
    """Accepts ``good_code`` for every phone and records sent codes."""

    def __init__(self, good_code="123456"):
        self.good_code = good_code
        self.sent = []

    def send_code(self, phone):
        self.sent.append(phone)

    def check_code(self, phone, code):
        return code == self.good_code


@pytest.fixture
def verifier():
    return FakeVerifier()


@pytest.fixture
def client(db, verifier):
    from fastapi.testclient import TestClient

    from backend.main import app
    from backend.services.phone_verification import get_phone_verifier

    app.dependency_overrides[get_phone_verifier] = lambda: verifier
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def signed_in(db, make_monkey):
    """Factory: a monkey plus X-Session-Token headers for it."""
    from backend.services.identity import open_session

    def _make(phone=None):
        monkey = make_monkey(phone)
        token = open_session(db, monkey)
        return monkey, {"X-Session-Token": token}

    return _make
