"""Shared utilities for all dashboard pages."""

import logging
import os
from datetime import datetime
from typing import Optional, Tuple

import requests
import streamlit as st
from dotenv import load_dotenv

from dashboard.realtime import ChangeCounter, ChangeListener
from dashboard.session import SessionContext, SessionStore, is_visitor_id, new_visitor_id

load_dotenv()

logger = logging.getLogger(__name__)

API_URL = os.getenv("API_URL", "http://localhost:8000")

HOME_PAGE = "app.py"
LOGIN_PAGE = "pages/5_Login.py"
PROP_PAGE = "pages/2_Prop_Details.py"
WAGER_PAGE = "pages/3_Wager_Details.py"


# ---------------------------------------------------------------------------
# Session
# ---------------------------------------------------------------------------

VISITOR_PARAM = "visitor"


def get_session() -> SessionContext:
    """The SessionContext for this browser session, initialised on first use.

    The persisted record is keyed by the ``visitor`` query parameter, which
    is re-added to the URL on every run since page switches drop it.
    """
    ctx = st.session_state.get("session_ctx")
    if ctx is None:
        visitor_id = st.query_params.get(VISITOR_PARAM)
        if not is_visitor_id(visitor_id):
            visitor_id = new_visitor_id()
        ctx = SessionContext(API_URL, store=SessionStore(visitor_id))
        ctx.init()
        st.session_state["session_ctx"] = ctx
    if st.query_params.get(VISITOR_PARAM) != ctx.store.visitor_id:
        st.query_params[VISITOR_PARAM] = ctx.store.visitor_id
    return ctx


def require_session(page: str, prop_id: Optional[str] = None) -> SessionContext:
    """Route guard: send anonymous users to sign-in, remembering where they were."""
    ctx = get_session()
    if not ctx.signed_in:
        st.session_state["return_to"] = {"page": page, "prop_id": prop_id}
        st.switch_page(LOGIN_PAGE)
    return ctx


def go_to_prop(prop_id: str, page: str = PROP_PAGE) -> None:
    st.session_state["prop_id"] = prop_id
    st.switch_page(page)


def selected_prop_id() -> Optional[str]:
    return st.query_params.get("prop") or st.session_state.get("prop_id")


def sidebar_account() -> None:
    """Signed-in phone and sign-out button in the sidebar."""
    ctx = get_session()
    with st.sidebar:
        st.title("🍌 MonkeyBets")
        if ctx.signed_in:
            st.caption(f"Signed in as {ctx.monkey.phone}")
            if st.button("Sign out"):
                api_call("POST", "/api/auth/sign-out")
                ctx.clear()
                st.switch_page(LOGIN_PAGE)


# ---------------------------------------------------------------------------
# API
# ---------------------------------------------------------------------------

def api_call(method: str, endpoint: str, payload: dict = None, params: dict = None) -> Tuple[int, Optional[dict]]:
    """Raw request: returns (status_code, json).  status 0 means the API was unreachable."""
    headers = get_session().headers()
    try:
        r = requests.request(
            method,
            f"{API_URL}{endpoint}",
            headers=headers,
            json=payload,
            params=params,
            timeout=15,
        )
    except requests.RequestException as exc:
        logger.error("API %s %s failed: %s", method, endpoint, exc)
        return 0, {"detail": "Could not reach MonkeyBets. Please try again."}

    try:
        data = r.json()
    except ValueError:
        data = None
    return r.status_code, data


def error_message(data: Optional[dict], fallback: str = "Something went wrong") -> str:
    """Player-facing text from an API error body."""
    detail = (data or {}).get("detail")
    if isinstance(detail, str):
        return detail
    if isinstance(detail, dict):
        return detail.get("message", fallback)
    if isinstance(detail, list) and detail:
        # FastAPI validation errors: [{"loc": [...], "msg": "..."}]
        msg = detail[0].get("msg", fallback)
        return msg.replace("Value error, ", "")
    return fallback


# ---------------------------------------------------------------------------
# Live refresh
# ---------------------------------------------------------------------------

@st.cache_resource
def shared_changes(api_url: str) -> ChangeCounter:
    """One listener per server process; every browser session polls its counter."""
    counter = ChangeCounter()
    counter.listener = ChangeListener(api_url, counter.bump).start()
    return counter


def live_refresh(every: str = "2s") -> None:
    """Re-run the page whenever the API reports a change to props or wagers."""
    counter = shared_changes(API_URL)
    st.session_state.setdefault("seen_changes", counter.value)

    @st.fragment(run_every=every)
    def _watch():
        if counter.value != st.session_state["seen_changes"]:
            st.session_state["seen_changes"] = counter.value
            st.rerun()

    _watch()


# ---------------------------------------------------------------------------
# Formatting
# ---------------------------------------------------------------------------

def format_expiry(value: str, with_time: bool = True) -> str:
    dt = datetime.fromisoformat(value)
    return dt.strftime("%b %d, %Y %I:%M %p UTC" if with_time else "%b %d, %Y")


def side_label(prediction: bool) -> str:
    return "Yes" if prediction else "No"
