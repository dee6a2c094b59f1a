"""
Tests for backend/services/props.py against an in-memory SQLite store.

Run with: pytest tests/test_props_service.py -v
"""

from datetime import datetime, timedelta
from types import SimpleNamespace

import pytest

from backend.models import Prop
from backend.services import props as props_service
from backend.services.exceptions import (
    MonkeyBetsError,
    PermissionDenied,
    PropNotFound,
    PropUnavailable,
    ResultAlreadySet,
    ValidationFailed,
    WagerRejected,
)
from backend.services.props import (
    build_dashboard,
    build_prop_detail,
    build_public_prop,
    build_wager_detail,
    create_prop,
    get_prop,
    list_active_wagers,
    list_created_props,
    list_props_by_owner,
    list_wagers,
    place_wager,
    set_result,
    share_url,
    soft_delete_prop,
)


@pytest.fixture
def alice(make_monkey):
    return make_monkey("+15550000001")


@pytest.fixture
def bob(make_monkey):
    return make_monkey("+15550000002")


@pytest.fixture
def carol(make_monkey):
    return make_monkey("+15550000003")


# ---------------------------------------------------------------------------
# create_prop
# ---------------------------------------------------------------------------

class TestCreateProp:
    def test_creates_open_prop(self, db, alice):
        prop = create_prop(db, alice.id, "  Will it snow?  ", datetime.utcnow() + timedelta(days=2))
        assert prop.id
        assert prop.name == "Will it snow?"
        assert prop.result is None
        assert prop.deleted_at is None
        assert prop.creator_id == alice.id

    @pytest.mark.parametrize("name", ["", "   "])
    def test_empty_name_rejected(self, db, alice, name):
        with pytest.raises(ValidationFailed):
            create_prop(db, alice.id, name, datetime.utcnow() + timedelta(days=1))

    def test_long_name_rejected(self, db, alice):
        with pytest.raises(ValidationFailed):
            create_prop(db, alice.id, "x" * 201, datetime.utcnow() + timedelta(days=1))

    def test_past_expiry_rejected(self, db, alice):
        with pytest.raises(ValidationFailed, match="future"):
            create_prop(db, alice.id, "Too late", datetime.utcnow() - timedelta(minutes=1))

    def test_expiry_equal_to_now_rejected(self, db, alice):
        now = datetime(2026, 6, 1, 12, 0)
        with pytest.raises(ValidationFailed):
            create_prop(db, alice.id, "Now", now, now=now)


# ---------------------------------------------------------------------------
# place_wager
# ---------------------------------------------------------------------------

class TestPlaceWager:
    def test_places_wager(self, db, alice, bob, make_prop):
        prop = make_prop(alice)
        wager = place_wager(db, prop.id, bob.id, True, 25)
        assert wager.prop_id == prop.id
        assert wager.bettor_id == bob.id
        assert wager.prediction is True
        assert wager.bananas == 25

    @pytest.mark.parametrize("bananas", [0, -5, True, 2.5])
    def test_invalid_bananas_rejected(self, db, alice, bob, make_prop, bananas):
        prop = make_prop(alice)
        with pytest.raises(ValidationFailed):
            place_wager(db, prop.id, bob.id, True, bananas)
        assert list_wagers(db, prop_id=prop.id) == []

    def test_unknown_prop(self, db, bob):
        with pytest.raises(PropNotFound):
            place_wager(db, "missing", bob.id, True, 10)

    def test_creator_cannot_wager(self, db, alice, make_prop):
        prop = make_prop(alice)
        with pytest.raises(PermissionDenied):
            place_wager(db, prop.id, alice.id, True, 10)

    def test_expired_prop_rejected(self, db, alice, bob, make_prop):
        prop = make_prop(alice, expires_in=-timedelta(minutes=1))
        with pytest.raises(WagerRejected, match="expired"):
            place_wager(db, prop.id, bob.id, True, 10)

    def test_resolved_prop_rejected_even_before_expiry(self, db, alice, bob, make_prop):
        prop = make_prop(alice, result=True)
        with pytest.raises(WagerRejected, match="resolved"):
            place_wager(db, prop.id, bob.id, False, 10)

    def test_deleted_prop_rejected(self, db, alice, bob, make_prop):
        prop = make_prop(alice, deleted=True)
        with pytest.raises(PropUnavailable):
            place_wager(db, prop.id, bob.id, True, 10)

    def test_one_wager_per_bettor_by_default(self, db, alice, bob, make_prop):
        prop = make_prop(alice)
        place_wager(db, prop.id, bob.id, True, 10)
        with pytest.raises(WagerRejected, match="already"):
            place_wager(db, prop.id, bob.id, False, 5)

    def test_multiple_wagers_when_allowed(self, db, alice, bob, make_prop):
        prop = make_prop(alice)
        place_wager(db, prop.id, bob.id, True, 10, allow_multiple=True)
        place_wager(db, prop.id, bob.id, False, 5, allow_multiple=True)
        assert len(list_wagers(db, prop_id=prop.id)) == 2

    def test_multiple_wagers_from_env(self, db, alice, bob, make_prop, monkeypatch):
        monkeypatch.setenv("ALLOW_MULTIPLE_WAGERS", "true")
        prop = make_prop(alice)
        place_wager(db, prop.id, bob.id, True, 10)
        place_wager(db, prop.id, bob.id, True, 10)
        assert len(list_wagers(db, prop_id=prop.id)) == 2


# ---------------------------------------------------------------------------
# set_result
# ---------------------------------------------------------------------------

class TestSetResult:
    def test_creator_sets_result_after_expiry(self, db, alice, make_prop):
        prop = make_prop(alice, expires_in=-timedelta(hours=1))
        settled = set_result(db, prop.id, alice.id, False)
        assert settled.result is False
        assert settled.resolved_at is not None

    def test_only_creator(self, db, alice, bob, make_prop):
        prop = make_prop(alice, expires_in=-timedelta(hours=1))
        with pytest.raises(PermissionDenied):
            set_result(db, prop.id, bob.id, True)

    def test_not_before_expiry(self, db, alice, make_prop):
        prop = make_prop(alice)
        with pytest.raises(MonkeyBetsError) as exc_info:
            set_result(db, prop.id, alice.id, True)
        assert exc_info.value.status_code == 409

    def test_cannot_change_result(self, db, alice, make_prop):
        prop = make_prop(alice, expires_in=-timedelta(hours=1))
        set_result(db, prop.id, alice.id, True)
        with pytest.raises(ResultAlreadySet):
            set_result(db, prop.id, alice.id, False)
        db.expire_all()
        assert db.get(Prop, prop.id).result is True

    def test_concurrent_update_loses(self, db, alice, make_prop, monkeypatch):
        """A result written after our read but before our UPDATE wins."""
        prop = make_prop(alice, expires_in=-timedelta(hours=1))
        stale = SimpleNamespace(
            id=prop.id,
            creator_id=alice.id,
            expiry_date=prop.expiry_date,
            result=None,
            deleted_at=None,
        )
        db.query(Prop).filter(Prop.id == prop.id).update({"result": True}, synchronize_session=False)
        db.commit()
        monkeypatch.setattr(props_service, "_load_prop", lambda *_args, **_kw: stale)

        with pytest.raises(ResultAlreadySet):
            set_result(db, prop.id, alice.id, False)
        db.expire_all()
        assert db.get(Prop, prop.id).result is True

    def test_deleted_prop_cannot_be_resolved(self, db, alice, make_prop):
        prop = make_prop(alice, expires_in=-timedelta(hours=1), deleted=True)
        with pytest.raises(PropUnavailable):
            set_result(db, prop.id, alice.id, True)


# ---------------------------------------------------------------------------
# soft_delete_prop / visibility
# ---------------------------------------------------------------------------

class TestSoftDelete:
    def test_creator_deletes(self, db, alice, make_prop):
        prop = make_prop(alice)
        deleted = soft_delete_prop(db, prop.id, alice.id)
        assert deleted.deleted_at is not None
        assert list_created_props(db, alice.id) == []

    def test_only_creator(self, db, alice, bob, make_prop):
        prop = make_prop(alice)
        with pytest.raises(PermissionDenied):
            soft_delete_prop(db, prop.id, bob.id)

    def test_resolved_prop_cannot_be_deleted(self, db, alice, make_prop):
        prop = make_prop(alice, expires_in=-timedelta(hours=1), result=True)
        with pytest.raises(MonkeyBetsError) as exc_info:
            soft_delete_prop(db, prop.id, alice.id)
        assert exc_info.value.status_code == 409

    def test_second_delete_reports_unavailable(self, db, alice, make_prop):
        prop = make_prop(alice)
        soft_delete_prop(db, prop.id, alice.id)
        with pytest.raises(PropUnavailable):
            soft_delete_prop(db, prop.id, alice.id)

    def test_wagers_survive_deletion(self, db, alice, bob, make_prop, make_wager):
        prop = make_prop(alice)
        make_wager(prop, bob, True, 10)
        soft_delete_prop(db, prop.id, alice.id)
        assert len(list_wagers(db, prop_id=prop.id)) == 1

    def test_deleted_prop_visible_to_creator_and_bettors_only(self, db, alice, bob, carol, make_prop, make_wager):
        prop = make_prop(alice)
        make_wager(prop, bob, True, 10)
        soft_delete_prop(db, prop.id, alice.id)

        assert get_prop(db, prop.id, alice.id).id == prop.id
        assert get_prop(db, prop.id, bob.id).id == prop.id
        with pytest.raises(PropUnavailable):
            get_prop(db, prop.id, carol.id)
        with pytest.raises(PropUnavailable):
            get_prop(db, prop.id)


# ---------------------------------------------------------------------------
# Listings
# ---------------------------------------------------------------------------

class TestListings:
    def test_created_props_newest_first_excludes_resolved_and_deleted(self, db, alice, make_prop):
        t0 = datetime(2026, 1, 1)
        older = make_prop(alice, name="older", created_at=t0)
        newer = make_prop(alice, name="newer", created_at=t0 + timedelta(hours=1))
        make_prop(alice, name="resolved", result=False, created_at=t0 + timedelta(hours=2))
        make_prop(alice, name="deleted", deleted=True, created_at=t0 + timedelta(hours=3))

        assert [p.id for p in list_created_props(db, alice.id)] == [newer.id, older.id]

    def test_props_by_owner_unresolved_first(self, db, alice, make_prop):
        t0 = datetime(2026, 1, 1)
        resolved_new = make_prop(alice, result=True, created_at=t0 + timedelta(hours=5))
        open_old = make_prop(alice, created_at=t0)
        open_new = make_prop(alice, created_at=t0 + timedelta(hours=1))

        ids = [p.id for p in list_props_by_owner(db, alice.id)]
        assert ids == [open_new.id, open_old.id, resolved_new.id]

    def test_active_wagers_only_on_live_props(self, db, alice, bob, make_prop, make_wager):
        live = make_prop(alice)
        resolved = make_prop(alice, result=True)
        deleted = make_prop(alice, deleted=True)
        for prop in (live, resolved, deleted):
            make_wager(prop, bob)

        active = list_active_wagers(db, bob.id)
        assert [w.prop_id for w in active] == [live.id]
        assert active[0].prop.name == live.name


# ---------------------------------------------------------------------------
# View payloads
# ---------------------------------------------------------------------------

class TestViews:
    def test_dashboard_odds(self, db, alice, bob, carol, make_prop, make_wager):
        prop = make_prop(alice)
        make_wager(prop, bob, True, 75)
        make_wager(prop, carol, False, 25)
        empty = make_prop(alice, name="Quiet prop")

        board = build_dashboard(db, alice.id)
        by_id = {item["prop"]["id"]: item for item in board["created_props"]}
        assert by_id[prop.id]["yes_odds"] == "-300"
        assert by_id[prop.id]["no_odds"] == "+300"
        assert by_id[empty.id]["yes_odds"] == "+100"
        assert by_id[prop.id]["share_url"] == share_url(prop.id)

        bob_board = build_dashboard(db, bob.id)
        assert bob_board["created_props"] == []
        assert bob_board["active_wagers"][0]["your_odds"] == "-300"

    def test_prop_detail_for_bettor(self, db, alice, bob, carol, make_prop, make_wager):
        prop = make_prop(alice)
        make_wager(prop, bob, True, 75)
        make_wager(prop, carol, False, 25)

        detail = build_prop_detail(db, prop.id, bob.id)
        assert detail["totals"] == {"yes_bananas": 75, "no_bananas": 25, "total_bananas": 100}
        assert detail["yes_odds"] == pytest.approx(1.25)
        assert detail["no_odds"] == pytest.approx(1.75)
        assert detail["my_wagers"][0]["potential_payout"] == pytest.approx(93.75)
        assert detail["my_wagers"][0]["outcome"] == "pending"
        assert detail["can_wager"] is False  # already wagered
        assert detail["can_set_result"] is False
        assert detail["can_delete"] is False

    def test_prop_detail_for_creator(self, db, alice, make_prop):
        prop = make_prop(alice)
        detail = build_prop_detail(db, prop.id, alice.id)
        assert detail["is_creator"] is True
        assert detail["can_wager"] is False
        assert detail["can_delete"] is True
        assert detail["yes_odds"] == 2.0

    def test_wager_detail_after_resolution(self, db, alice, bob, make_prop, make_wager):
        prop = make_prop(alice, expires_in=-timedelta(hours=1))
        make_wager(prop, bob, False, 10)
        set_result(db, prop.id, alice.id, False)

        detail = build_wager_detail(db, prop.id, bob.id)
        assert detail["wager"]["outcome"] == "won"
        assert detail["prop"]["state"] == "resolved"

    def test_wager_detail_without_wager(self, db, alice, bob, make_prop):
        prop = make_prop(alice)
        assert build_wager_detail(db, prop.id, bob.id)["wager"] is None

    def test_public_prop(self, db, alice, bob, make_prop, make_wager):
        prop = make_prop(alice)
        make_wager(prop, bob, True, 10)
        public = build_public_prop(db, prop.id)
        assert public["name"] == prop.name
        assert public["accepting_wagers"] is True
        assert (public["yes_odds"], public["no_odds"]) == ("-∞", "+∞")

    def test_public_prop_deleted(self, db, alice, make_prop):
        prop = make_prop(alice, deleted=True)
        with pytest.raises(PropUnavailable):
            build_public_prop(db, prop.id)

    def test_public_prop_deleted_still_shown_to_bettor_and_creator(self, db, alice, bob, carol, make_prop, make_wager):
        prop = make_prop(alice)
        make_wager(prop, bob, True, 10)
        soft_delete_prop(db, prop.id, alice.id)

        for viewer in (alice, bob):
            public = build_public_prop(db, prop.id, viewer.id)
            assert public["is_deleted"] is True
            assert public["accepting_wagers"] is False
        with pytest.raises(PropUnavailable):
            build_public_prop(db, prop.id, carol.id)
