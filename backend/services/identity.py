"""
Identity and sign-in sessions.

Monkeys are identified by phone number.  The phone is verified by SMS
(see phone_verification.py) *before* any of these functions are called;
sign_up() therefore creates already-verified accounts and sign_in()
flips the flag on legacy unverified ones.

Sessions are opaque random tokens stored server-side.  They slide: every
resolve_session() call refreshes last_seen_at, and sessions idle for longer
than SESSION_TTL_DAYS are rejected and later purged by the scheduler.
"""

import logging
import os
import secrets
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from backend.core.phone import normalize_phone
from backend.models import Monkey, MonkeySession
from backend.services.exceptions import (
    AccountNotFound,
    PhoneAlreadyRegistered,
    ValidationFailed,
)

logger = logging.getLogger(__name__)


def session_ttl() -> timedelta:
    return timedelta(days=int(os.getenv("SESSION_TTL_DAYS", "30")))


def _normalized(phone: str) -> str:
    try:
        return normalize_phone(phone)
    except ValueError as exc:
        raise ValidationFailed(str(exc)) from exc


def mask_phone(phone: str) -> str:
    """'+15551234567' → '+1******4567' for logs."""
    return phone[:2] + "*" * max(len(phone) - 6, 0) + phone[-4:]


# ---------------------------------------------------------------------------
# Identity
# ---------------------------------------------------------------------------

def find_by_phone(db: Session, phone: str) -> Optional[Monkey]:
    return db.query(Monkey).filter(Monkey.phone == _normalized(phone)).first()


def get_monkey(db: Session, monkey_id: str) -> Optional[Monkey]:
    return db.query(Monkey).filter(Monkey.id == monkey_id).first()


def sign_up(db: Session, phone: str) -> Monkey:
    phone = _normalized(phone)
    if find_by_phone(db, phone) is not None:
        raise PhoneAlreadyRegistered("Phone number already registered")

    monkey = Monkey(phone=phone, phone_verified=True)
    db.add(monkey)
    db.commit()
    db.refresh(monkey)

    logger.info("New monkey %s signed up (%s)", monkey.id, mask_phone(phone))
    return monkey


def sign_in(db: Session, phone: str) -> Monkey:
    monkey = find_by_phone(db, phone)
    if monkey is None:
        raise AccountNotFound("Account not found. Please sign up first.")

    if not monkey.phone_verified:
        monkey.phone_verified = True
        db.commit()
        db.refresh(monkey)
        logger.info("Phone verified for monkey %s", monkey.id)

    return monkey


# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------

def open_session(db: Session, monkey: Monkey) -> str:
    token = secrets.token_urlsafe(32)
    db.add(MonkeySession(token=token, monkey_id=monkey.id))
    db.commit()
    return token


def resolve_session(db: Session, token: str, now: Optional[datetime] = None) -> Optional[Monkey]:
    """Monkey for a live session token, or None if unknown / idle too long."""
    if not token:
        return None
    now = now or datetime.utcnow()

    row = db.query(MonkeySession).filter(MonkeySession.token == token).first()
    if row is None:
        return None

    if row.last_seen_at is not None and now - row.last_seen_at > session_ttl():
        monkey_id = row.monkey_id
        db.delete(row)
        db.commit()
        logger.info("Session for monkey %s expired", monkey_id)
        return None

    row.last_seen_at = now
    db.commit()
    return row.monkey


def close_session(db: Session, token: str) -> bool:
    deleted = db.query(MonkeySession).filter(MonkeySession.token == token).delete()
    db.commit()
    return deleted > 0


def purge_expired_sessions(db: Session, now: Optional[datetime] = None) -> int:
    cutoff = (now or datetime.utcnow()) - session_ttl()
    purged = (
        db.query(MonkeySession)
        .filter(MonkeySession.last_seen_at < cutoff)
        .delete(synchronize_session=False)
    )
    db.commit()
    if purged:
        logger.info("Purged %d expired sessions", purged)
    return purged
