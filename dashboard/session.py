"""Client-side session for the dashboard.

``SessionContext`` is the one place the signed-in monkey lives.  Pages get
it from ``dashboard.utils.get_session()``; nothing else reads the
persisted file or the token directly.

Each browser carries a random visitor id (the ``visitor`` query parameter)
and gets its own record; a context built without a store gets a fresh id
and so starts signed out.

Lifecycle::

    ctx.init()            # on startup: restore persisted identity, re-check with the API
    ctx.set(monkey, tok)  # after sign-in / sign-up
    ctx.clear()           # sign-out: forget in memory and on disk

A pending wager draft (prediction + bananas typed on the shared-prop view
before signing in) is stashed in Streamlit's ``session_state`` so it
survives the sign-in redirect, and popped once it has been restored.

This module has no Streamlit import so it can be tested on its own.
"""

from __future__ import annotations

import json
import logging
import os
import re
import secrets
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Callable, MutableMapping, Optional

import requests

logger = logging.getLogger(__name__)

DEFAULT_SESSION_DIR = Path.home() / ".monkeybets" / "sessions"

PENDING_WAGER_KEY = "pending_wager"


@dataclass
class SignedInMonkey:
    id: str
    phone: str
    phone_verified: bool


_VISITOR_ID = re.compile(r"^[A-Za-z0-9_-]{16,64}$")


def new_visitor_id() -> str:
    return secrets.token_urlsafe(24)


def is_visitor_id(value: Optional[str]) -> bool:
    return bool(value) and bool(_VISITOR_ID.match(value))


class SessionStore:
    """Persists one visitor's identity and token to its own JSON file.

    Records live under ``MONKEYBETS_SESSION_DIR`` keyed by the visitor id,
    so two browsers never read each other's session.
    """

    def __init__(self, visitor_id: str, directory: Optional[Path] = None):
        if not is_visitor_id(visitor_id):
            raise ValueError(f"Invalid visitor id {visitor_id!r}")
        self.visitor_id = visitor_id
        base = Path(directory or os.getenv("MONKEYBETS_SESSION_DIR") or DEFAULT_SESSION_DIR)
        self.path = base / f"{visitor_id}.json"

    def load(self) -> Optional[dict]:
        try:
            return json.loads(self.path.read_text())
        except FileNotFoundError:
            return None
        except (OSError, ValueError) as exc:
            logger.warning("Ignoring unreadable session file %s: %s", self.path, exc)
            return None

    def save(self, data: dict) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(data))

    def remove(self) -> None:
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass


def fetch_me(api_url: str, token: str) -> Optional[dict]:
    """GET /api/auth/me.  None when the token is no longer valid."""
    r = requests.get(f"{api_url}/api/auth/me", headers={"X-Session-Token": token}, timeout=10)
    if r.status_code == 401:
        return None
    r.raise_for_status()
    return r.json()


class SessionContext:
    """Holds the signed-in monkey for one dashboard user."""

    def __init__(
        self,
        api_url: str,
        store: Optional[SessionStore] = None,
        verify: Callable[[str, str], Optional[dict]] = fetch_me,
    ):
        self.api_url = api_url
        self.store = store or SessionStore(new_visitor_id())
        self._verify = verify
        self.monkey: Optional[SignedInMonkey] = None
        self.token: Optional[str] = None
        self.loading = True

    @property
    def signed_in(self) -> bool:
        return self.monkey is not None and self.token is not None

    def init(self) -> None:
        """Restore a persisted session if the API still accepts its token."""
        try:
            stored = self.store.load()
            if not stored or not stored.get("token"):
                return
            me = self._verify(self.api_url, stored["token"])
            if me:
                self._apply(me, stored["token"])
            else:
                logger.info("Persisted session rejected by the API; clearing it")
                self.clear()
        except (requests.RequestException, KeyError, TypeError) as exc:
            logger.warning("Could not restore session: %s", exc)
            self.clear()
        finally:
            self.loading = False

    def set(self, monkey: dict, token: str) -> None:
        self._apply(monkey, token)
        self.store.save({"token": token, "monkey": asdict(self.monkey)})

    def clear(self) -> None:
        self.monkey = None
        self.token = None
        self.store.remove()

    def _apply(self, monkey: dict, token: str) -> None:
        self.monkey = SignedInMonkey(
            id=monkey["id"],
            phone=monkey["phone"],
            phone_verified=bool(monkey.get("phone_verified", False)),
        )
        self.token = token

    def headers(self) -> dict:
        return {"X-Session-Token": self.token} if self.token else {}


# ---------------------------------------------------------------------------
# Pending wager draft
# ---------------------------------------------------------------------------

def stash_pending_wager(
    state: MutableMapping,
    prop_id: str,
    prediction: Optional[bool],
    bananas: Optional[int],
) -> None:
    state[PENDING_WAGER_KEY] = {"prop_id": prop_id, "prediction": prediction, "bananas": bananas}


def pop_pending_wager(state: MutableMapping, prop_id: str) -> Optional[dict]:
    """Return and forget the draft for ``prop_id``; drafts for other props are left alone."""
    draft = state.get(PENDING_WAGER_KEY)
    if not draft or draft.get("prop_id") != prop_id:
        return None
    del state[PENDING_WAGER_KEY]
    return draft
