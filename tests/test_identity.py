"""Tests for identity.py: sign-up / sign-in and sliding sessions."""

from datetime import datetime, timedelta

import pytest

from backend.models import MonkeySession
from backend.services.exceptions import AccountNotFound, PhoneAlreadyRegistered, ValidationFailed
from backend.services.identity import (
    close_session,
    find_by_phone,
    get_monkey,
    mask_phone,
    open_session,
    purge_expired_sessions,
    resolve_session,
    session_ttl,
    sign_in,
    sign_up,
)


# ---------------------------------------------------------------------------
# Identity
# ---------------------------------------------------------------------------

def test_sign_up_normalises_phone_and_verifies(db):
    monkey = sign_up(db, "(555) 987-6543")
    assert monkey.phone == "+15559876543"
    assert monkey.phone_verified is True


def test_sign_up_twice_rejected(db):
    sign_up(db, "5559876543")
    with pytest.raises(PhoneAlreadyRegistered):
        sign_up(db, "+1 555 987 6543")


def test_sign_up_invalid_phone(db):
    with pytest.raises(ValidationFailed):
        sign_up(db, "12345")


def test_sign_in_unknown_phone(db):
    with pytest.raises(AccountNotFound):
        sign_in(db, "5550001111")


def test_sign_in_marks_phone_verified(db, make_monkey):
    legacy = make_monkey("+15550002222", verified=False)
    monkey = sign_in(db, "555-000-2222")
    assert monkey.id == legacy.id
    assert monkey.phone_verified is True


def test_find_by_phone_any_format(db, make_monkey):
    monkey = make_monkey("+15550003333")
    assert find_by_phone(db, "(555) 000-3333").id == monkey.id
    assert find_by_phone(db, "5550004444") is None


def test_get_monkey(db, make_monkey):
    monkey = make_monkey()
    assert get_monkey(db, monkey.id).phone == monkey.phone
    assert get_monkey(db, "missing") is None


def test_mask_phone():
    assert mask_phone("+15551234567") == "+1******4567"


# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------

class TestSessions:
    def test_open_and_resolve(self, db, make_monkey):
        monkey = make_monkey()
        token = open_session(db, monkey)
        assert len(token) >= 32
        assert resolve_session(db, token).id == monkey.id

    def test_unknown_or_empty_token(self, db):
        assert resolve_session(db, "nope") is None
        assert resolve_session(db, "") is None

    def test_resolve_slides_last_seen(self, db, make_monkey):
        monkey = make_monkey()
        token = open_session(db, monkey)
        later = datetime.utcnow() + timedelta(days=10)
        resolve_session(db, token, now=later)
        row = db.get(MonkeySession, token)
        assert row.last_seen_at == later

    def test_idle_session_expires(self, db, make_monkey, monkeypatch):
        monkeypatch.setenv("SESSION_TTL_DAYS", "7")
        assert session_ttl() == timedelta(days=7)
        monkey = make_monkey()
        token = open_session(db, monkey)

        assert resolve_session(db, token, now=datetime.utcnow() + timedelta(days=8)) is None
        assert db.get(MonkeySession, token) is None

    def test_close_session(self, db, make_monkey):
        token = open_session(db, make_monkey())
        assert close_session(db, token) is True
        assert resolve_session(db, token) is None
        assert close_session(db, token) is False

    def test_purge_expired_sessions(self, db, make_monkey):
        monkey = make_monkey()
        stale = open_session(db, monkey)
        fresh = open_session(db, monkey)
        db.get(MonkeySession, stale).last_seen_at = datetime.utcnow() - timedelta(days=31)
        db.commit()

        assert purge_expired_sessions(db) == 1
        db.expire_all()
        assert db.get(MonkeySession, stale) is None
        assert db.get(MonkeySession, fresh) is not None
