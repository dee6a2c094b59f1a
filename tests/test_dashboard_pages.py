"""
Tests for dashboard pages, run headless with Streamlit's AppTest.

Run with: pytest tests/test_dashboard_pages.py -v
"""

import pytest
from streamlit.testing.v1 import AppTest

from dashboard import utils
from dashboard.session import PENDING_WAGER_KEY

SHARED_PAGE = "../dashboard/pages/4_Shared_Prop.py"

PUBLIC_PROP = {
    "id": "p-1",
    "name": "Will it rain?",
    "expiry_date": "2030-01-01T12:00:00",
    "state": "open",
    "result": None,
    "accepting_wagers": True,
    "is_deleted": False,
    "yes_odds": "-300",
    "no_odds": "+300",
}


@pytest.fixture
def api_calls():
    return []


@pytest.fixture
def shared_page(tmp_path, monkeypatch, api_calls):
    monkeypatch.setenv("MONKEYBETS_SESSION_DIR", str(tmp_path))

    def fake_api_call(method, endpoint, payload=None, params=None):
        api_calls.append((method, endpoint))
        return 200, dict(PUBLIC_PROP)

    monkeypatch.setattr(utils, "api_call", fake_api_call)
    at = AppTest.from_file(SHARED_PAGE)
    at.session_state["prop_id"] = "p-1"
    return at


def _widget_warnings(at):
    return [w.value for w in at.warning if "Session State" in str(w.value)]


def test_defaults_without_draft(shared_page, api_calls):
    shared_page.run()

    assert not shared_page.exception
    assert shared_page.number_input(key="shared_bananas").value == 10
    assert shared_page.radio(key="shared_prediction").value == "Yes"
    assert api_calls == [("GET", "/api/public/props/p-1")]


def test_restored_draft_fills_form_without_widget_warning(shared_page):
    shared_page.session_state[PENDING_WAGER_KEY] = {"prop_id": "p-1", "prediction": False, "bananas": 40}
    shared_page.run()

    assert not shared_page.exception
    assert shared_page.number_input(key="shared_bananas").value == 40
    assert shared_page.radio(key="shared_prediction").value == "No"
    assert _widget_warnings(shared_page) == []


def test_deleted_prop_shown_to_bettor_without_form(shared_page, monkeypatch):
    monkeypatch.setattr(utils, "api_call", lambda *a, **kw: (200, {**PUBLIC_PROP, "is_deleted": True, "accepting_wagers": False}))
    shared_page.run()

    assert not shared_page.exception
    assert any("deleted" in w.value for w in shared_page.warning)
    assert len(shared_page.number_input) == 0
