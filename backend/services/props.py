"""
Prop and wager data access.

Reads and writes against the store, plus the view payloads built on top
of them (dashboard, prop detail, wager detail, public shared view).

Write rules:
  create_prop()       - name non-empty, expiry strictly in the future
  place_wager()       - open, non-deleted prop; not the creator; one per bettor
                        unless ALLOW_MULTIPLE_WAGERS=true
  set_result()        - creator only, after expiry, only while result IS NULL
  soft_delete_prop()  - creator only, only while unresolved

set_result() and soft_delete_prop() issue conditional UPDATEs so two
sessions of the same creator cannot both win.
"""

import logging
import os
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from sqlalchemy.orm import Session, contains_eager

from backend.core.aggregation import aggregate_wagers, odds_board, totals_for
from backend.core.lifecycle import (
    can_accept_wager,
    can_delete,
    can_set_result,
    classify,
    is_expired,
    utc_naive,
    wager_outcome,
)
from backend.core.odds_math import potential_payout
from backend.models import Prop, Wager
from backend.services.exceptions import (
    MonkeyBetsError,
    PermissionDenied,
    PropNotFound,
    PropUnavailable,
    ResultAlreadySet,
    ValidationFailed,
    WagerRejected,
)

logger = logging.getLogger(__name__)

MAX_NAME_LENGTH = 200


def multiple_wagers_allowed() -> bool:
    """Uniqueness policy: may one monkey wager on the same prop twice?"""
    return os.getenv("ALLOW_MULTIPLE_WAGERS", "false").lower() == "true"


def share_url(prop_id: str) -> str:
    """Public link to the shared-prop view of the dashboard."""
    base = os.getenv("PUBLIC_BASE_URL", "http://localhost:8501").rstrip("/")
    return f"{base}/Shared_Prop?prop={prop_id}"


def _now(now: Optional[datetime]) -> datetime:
    return utc_naive(now) if now is not None else datetime.utcnow()


# ---------------------------------------------------------------------------
# Serialisation
# ---------------------------------------------------------------------------

def prop_to_dict(prop: Prop, now: Optional[datetime] = None) -> Dict:
    return {
        "id": prop.id,
        "name": prop.name,
        "expiry_date": prop.expiry_date,
        "creator_id": prop.creator_id,
        "result": prop.result,
        "deleted_at": prop.deleted_at,
        "created_at": prop.created_at,
        "state": classify(prop, now).value,
        "is_deleted": prop.deleted_at is not None,
    }


def wager_to_dict(wager: Wager) -> Dict:
    return {
        "id": wager.id,
        "prop_id": wager.prop_id,
        "bettor_id": wager.bettor_id,
        "prediction": wager.prediction,
        "bananas": wager.bananas,
        "created_at": wager.created_at,
    }


def my_wager_to_dict(wager: Wager, prop: Prop, yes_odds: float, no_odds: float) -> Dict:
    multiplier = yes_odds if wager.prediction else no_odds
    return {
        **wager_to_dict(wager),
        "outcome": wager_outcome(wager, prop),
        "potential_payout": potential_payout(wager.bananas, multiplier),
    }


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

def _load_prop(db: Session, prop_id: str, for_update: bool = False) -> Prop:
    query = db.query(Prop).filter(Prop.id == prop_id)
    if for_update:
        query = query.with_for_update()
    prop = query.first()
    if prop is None:
        raise PropNotFound(prop_id)
    return prop


def has_wager(db: Session, prop_id: str, bettor_id: Optional[str]) -> bool:
    if bettor_id is None:
        return False
    return (
        db.query(Wager.id)
        .filter(Wager.prop_id == prop_id, Wager.bettor_id == bettor_id)
        .first()
        is not None
    )


def get_prop(db: Session, prop_id: str, viewer_id: Optional[str] = None) -> Prop:
    """
    Fetch a prop by id.

    Soft-deleted props stay visible to their creator and to anyone holding
    a wager on them; everybody else gets PropUnavailable.
    """
    prop = _load_prop(db, prop_id)
    if prop.deleted_at is not None:
        if viewer_id != prop.creator_id and not has_wager(db, prop_id, viewer_id):
            raise PropUnavailable(prop_id)
    return prop


def list_created_props(db: Session, owner_id: str) -> List[Prop]:
    """Owner's live props (not deleted, not resolved), newest first."""
    return (
        db.query(Prop)
        .filter(
            Prop.creator_id == owner_id,
            Prop.deleted_at.is_(None),
            Prop.result.is_(None),
        )
        .order_by(Prop.created_at.desc())
        .all()
    )


def list_props_by_owner(db: Session, owner_id: str) -> List[Prop]:
    """Owner's non-deleted props: unresolved first, then resolved; newest first in each."""
    return (
        db.query(Prop)
        .filter(Prop.creator_id == owner_id, Prop.deleted_at.is_(None))
        .order_by(Prop.result.isnot(None), Prop.created_at.desc())
        .all()
    )


def list_active_wagers(db: Session, bettor_id: str) -> List[Wager]:
    """Bettor's wagers on props that are still live, newest first."""
    return (
        db.query(Wager)
        .join(Wager.prop)
        .filter(
            Wager.bettor_id == bettor_id,
            Prop.result.is_(None),
            Prop.deleted_at.is_(None),
        )
        .options(contains_eager(Wager.prop))
        .order_by(Wager.created_at.desc())
        .all()
    )


def list_wagers(
    db: Session,
    prop_id: Optional[str] = None,
    prop_ids: Optional[Iterable[str]] = None,
) -> List[Wager]:
    """All wagers, or those on one prop / a set of props."""
    query = db.query(Wager)
    if prop_id is not None:
        query = query.filter(Wager.prop_id == prop_id)
    if prop_ids is not None:
        query = query.filter(Wager.prop_id.in_(list(prop_ids)))
    return query.order_by(Wager.created_at.asc()).all()


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------

def create_prop(
    db: Session,
    creator_id: str,
    name: str,
    expiry_date: datetime,
    now: Optional[datetime] = None,
) -> Prop:
    name = (name or "").strip()
    if not name:
        raise ValidationFailed("Prop name is required")
    if len(name) > MAX_NAME_LENGTH:
        raise ValidationFailed(f"Prop name must be at most {MAX_NAME_LENGTH} characters")

    expiry = utc_naive(expiry_date)
    if expiry <= _now(now):
        raise ValidationFailed("Expiry date must be in the future")

    prop = Prop(name=name, expiry_date=expiry, creator_id=creator_id)
    db.add(prop)
    db.commit()
    db.refresh(prop)

    logger.info("Prop created: %s (%s) by %s, expires %s", prop.id, prop.name, creator_id, expiry)
    return prop


def place_wager(
    db: Session,
    prop_id: str,
    bettor_id: str,
    prediction: bool,
    bananas: int,
    allow_multiple: Optional[bool] = None,
    now: Optional[datetime] = None,
) -> Wager:
    """
    Stake bananas on one side of a prop.

    Resolved props refuse wagers regardless of expiry.  The prop row is
    locked for the duration so a concurrent set_result() cannot slip in.
    """
    if isinstance(bananas, bool) or not isinstance(bananas, int) or bananas <= 0:
        raise ValidationFailed("Bananas must be a positive whole number")

    prop = _load_prop(db, prop_id, for_update=True)

    if prop.deleted_at is not None:
        raise PropUnavailable(prop_id)
    if prop.creator_id == bettor_id:
        raise PermissionDenied("You can't wager on your own prop")
    if prop.result is not None:
        raise WagerRejected("This prop has already been resolved")
    if is_expired(prop, now):
        raise WagerRejected("This prop has expired")

    if allow_multiple is None:
        allow_multiple = multiple_wagers_allowed()
    if not allow_multiple and has_wager(db, prop_id, bettor_id):
        raise WagerRejected("You already have a wager on this prop")

    wager = Wager(prop_id=prop_id, bettor_id=bettor_id, prediction=bool(prediction), bananas=bananas)
    db.add(wager)
    db.commit()
    db.refresh(wager)

    logger.info(
        "Wager placed: %d bananas on %s for prop %s by %s",
        bananas, "Yes" if prediction else "No", prop_id, bettor_id,
    )
    return wager


def set_result(
    db: Session,
    prop_id: str,
    actor_id: str,
    result: bool,
    now: Optional[datetime] = None,
) -> Prop:
    """Settle a prop.  Irreversible: a second call raises ResultAlreadySet."""
    now = _now(now)
    prop = _load_prop(db, prop_id)

    if prop.creator_id != actor_id:
        raise PermissionDenied("Only the prop's creator can set the result")
    if prop.deleted_at is not None:
        raise PropUnavailable(prop_id)
    if prop.result is not None:
        raise ResultAlreadySet("The result for this prop has already been set")
    if not is_expired(prop, now):
        raise MonkeyBetsError("The result can only be set after the prop expires", status_code=409)

    updated = (
        db.query(Prop)
        .filter(
            Prop.id == prop_id,
            Prop.creator_id == actor_id,
            Prop.result.is_(None),
            Prop.deleted_at.is_(None),
        )
        .update({"result": bool(result), "resolved_at": now}, synchronize_session=False)
    )
    db.commit()

    if updated == 0:
        raise ResultAlreadySet("The result for this prop has already been set")

    db.refresh(prop)
    logger.info("Prop %s resolved: %s", prop_id, "Yes" if result else "No")
    return prop


def soft_delete_prop(
    db: Session,
    prop_id: str,
    user_id: str,
    now: Optional[datetime] = None,
) -> Prop:
    """Mark a prop deleted.  Ownership is enforced here, not by the caller."""
    now = _now(now)
    prop = _load_prop(db, prop_id)

    if prop.creator_id != user_id:
        raise PermissionDenied("Only the prop's creator can delete it")
    if prop.deleted_at is not None:
        raise PropUnavailable(prop_id)
    if prop.result is not None:
        raise MonkeyBetsError("Resolved props can't be deleted", status_code=409)

    updated = (
        db.query(Prop)
        .filter(
            Prop.id == prop_id,
            Prop.creator_id == user_id,
            Prop.deleted_at.is_(None),
            Prop.result.is_(None),
        )
        .update({"deleted_at": now}, synchronize_session=False)
    )
    db.commit()

    if updated == 0:
        raise MonkeyBetsError("This prop can no longer be deleted", status_code=409)

    db.refresh(prop)
    logger.info("Prop %s soft-deleted by %s", prop_id, user_id)
    return prop


# ---------------------------------------------------------------------------
# View payloads
# ---------------------------------------------------------------------------

def build_dashboard(db: Session, monkey_id: str, now: Optional[datetime] = None) -> Dict:
    """Home view: the monkey's live props and live wagers, with American odds."""
    created = list_created_props(db, monkey_id)
    active = list_active_wagers(db, monkey_id)

    prop_ids = {p.id for p in created} | {w.prop_id for w in active}
    wagers = list_wagers(db, prop_ids=prop_ids) if prop_ids else []
    board = odds_board(wagers, prop_ids)

    return {
        "created_props": [
            {
                "prop": prop_to_dict(p, now),
                "yes_odds": board[p.id]["yes_odds"],
                "no_odds": board[p.id]["no_odds"],
                "share_url": share_url(p.id),
            }
            for p in created
        ],
        "active_wagers": [
            {
                "id": w.id,
                "prop_id": w.prop_id,
                "prop_name": w.prop.name,
                "expiry_date": w.prop.expiry_date,
                "prediction": w.prediction,
                "bananas": w.bananas,
                "your_odds": board[w.prop_id]["yes_odds" if w.prediction else "no_odds"],
            }
            for w in active
        ],
    }


def build_prop_detail(
    db: Session,
    prop_id: str,
    viewer_id: Optional[str],
    now: Optional[datetime] = None,
) -> Dict:
    """Prop detail view: pool totals, decimal multipliers, viewer's stake, allowed actions."""
    prop = get_prop(db, prop_id, viewer_id)
    wagers = list_wagers(db, prop_id=prop.id)
    totals = totals_for(aggregate_wagers(wagers), prop.id)
    yes_odds, no_odds = totals.decimal_multipliers()
    yes_american, no_american = totals.american_odds()
    is_creator = viewer_id is not None and viewer_id == prop.creator_id

    mine = [w for w in wagers if viewer_id is not None and w.bettor_id == viewer_id]
    already_wagered = bool(mine) and not multiple_wagers_allowed()

    return {
        "prop": prop_to_dict(prop, now),
        "totals": {
            "yes_bananas": totals.yes,
            "no_bananas": totals.no,
            "total_bananas": totals.total,
        },
        "yes_odds": yes_odds,
        "no_odds": no_odds,
        "yes_american": yes_american,
        "no_american": no_american,
        "wagers": [wager_to_dict(w) for w in wagers],
        "my_wagers": [my_wager_to_dict(w, prop, yes_odds, no_odds) for w in mine],
        "is_creator": is_creator,
        "can_wager": (
            viewer_id is not None
            and not is_creator
            and not already_wagered
            and can_accept_wager(prop, now)
        ),
        "can_set_result": can_set_result(prop, viewer_id, now),
        "can_delete": can_delete(prop, viewer_id),
        "share_url": share_url(prop.id),
    }


def build_wager_detail(
    db: Session,
    prop_id: str,
    viewer_id: str,
    now: Optional[datetime] = None,
) -> Dict:
    """Wager detail view: the viewer's most recent wager on a prop, if any."""
    detail = build_prop_detail(db, prop_id, viewer_id, now)
    mine = detail["my_wagers"]
    return {
        "prop": detail["prop"],
        "wager": mine[-1] if mine else None,
        "yes_odds": detail["yes_odds"],
        "no_odds": detail["no_odds"],
        "can_wager": detail["can_wager"],
        "share_url": detail["share_url"],
    }


def build_public_prop(
    db: Session,
    prop_id: str,
    viewer_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Dict:
    """
    Shared-link view.

    Deleted props are reported as no longer available, except to a signed-in
    viewer who created the prop or holds a wager on it.
    """
    prop = get_prop(db, prop_id, viewer_id)
    totals = totals_for(aggregate_wagers(list_wagers(db, prop_id=prop.id)), prop.id)
    yes_odds, no_odds = totals.american_odds()
    return {
        "id": prop.id,
        "name": prop.name,
        "expiry_date": prop.expiry_date,
        "state": classify(prop, now).value,
        "result": prop.result,
        "accepting_wagers": can_accept_wager(prop, now),
        "is_deleted": prop.deleted_at is not None,
        "yes_odds": yes_odds,
        "no_odds": no_odds,
    }
