"""Prop lifecycle: state classification and the rules that gate actions.

States are never stored.  They are derived from ``result`` and
``expiry_date`` at read time against the wall clock::

    OPEN ──(expiry passes)──► EXPIRED_UNRESOLVED ──(creator sets result)──► RESOLVED

``deleted_at`` is an orthogonal flag.  A prop can be deleted while OPEN or
EXPIRED_UNRESOLVED, never once RESOLVED.  RESOLVED and deleted props both
refuse new wagers.

All datetimes are compared as naive UTC, matching the columns in
``backend.models``.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional


class PropState(str, Enum):
    OPEN = "open"
    EXPIRED_UNRESOLVED = "expired_unresolved"
    RESOLVED = "resolved"


def utc_naive(dt: datetime) -> datetime:
    """Convert an aware datetime to naive UTC; naive values are assumed UTC."""
    if dt.tzinfo is not None:
        return dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def _now(now: Optional[datetime]) -> datetime:
    return utc_naive(now) if now is not None else datetime.utcnow()


def is_expired(prop: Any, now: Optional[datetime] = None) -> bool:
    return _now(now) >= utc_naive(prop.expiry_date)


def classify(prop: Any, now: Optional[datetime] = None) -> PropState:
    """Current state of ``prop`` (deletion is reported separately)."""
    if prop.result is not None:
        return PropState.RESOLVED
    if is_expired(prop, now):
        return PropState.EXPIRED_UNRESOLVED
    return PropState.OPEN


def is_deleted(prop: Any) -> bool:
    return prop.deleted_at is not None


def can_accept_wager(prop: Any, now: Optional[datetime] = None) -> bool:
    """Only OPEN, non-deleted props take wagers."""
    return not is_deleted(prop) and classify(prop, now) is PropState.OPEN


def can_set_result(prop: Any, actor_id: Optional[str], now: Optional[datetime] = None) -> bool:
    return (
        actor_id is not None
        and actor_id == prop.creator_id
        and not is_deleted(prop)
        and classify(prop, now) is PropState.EXPIRED_UNRESOLVED
    )


def can_delete(prop: Any, actor_id: Optional[str]) -> bool:
    return (
        actor_id is not None
        and actor_id == prop.creator_id
        and not is_deleted(prop)
        and prop.result is None
    )


def wager_outcome(wager: Any, prop: Any) -> str:
    """``"won"``, ``"lost"`` or ``"pending"`` for a wager on ``prop``."""
    if prop.result is None:
        return "pending"
    return "won" if bool(wager.prediction) == bool(prop.result) else "lost"
