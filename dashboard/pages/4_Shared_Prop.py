"""Shared Prop page — public view reached from a share link."""

import sys, os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", ".."))

import streamlit as st
from dashboard.session import pop_pending_wager, stash_pending_wager
from dashboard.utils import (
    HOME_PAGE,
    LOGIN_PAGE,
    WAGER_PAGE,
    api_call,
    error_message,
    format_expiry,
    get_session,
    go_to_prop,
    selected_prop_id,
    side_label,
    sidebar_account,
)

SHARED_PAGE = "pages/4_Shared_Prop.py"

st.set_page_config(page_title="Shared Prop | MonkeyBets", page_icon="🍌")
sidebar_account()

prop_id = selected_prop_id()
if not prop_id:
    st.error("Prop not found.")
    st.stop()
st.session_state["prop_id"] = prop_id

status, prop = api_call("GET", f"/api/public/props/{prop_id}")
if status == 404:
    st.error("Prop not found.")
    st.page_link(HOME_PAGE, label="Go to MonkeyBets")
    st.stop()
if status == 410:
    st.warning("This prop is no longer available.")
    st.page_link(HOME_PAGE, label="Go to MonkeyBets")
    st.stop()
if status != 200:
    st.error(error_message(prop, "Failed to load prop"))
    st.stop()

st.title(prop["name"])
st.caption(f"Expires: {format_expiry(prop['expiry_date'])}")

c1, c2 = st.columns(2)
c1.metric("Yes", prop["yes_odds"])
c2.metric("No", prop["no_odds"])

if prop["is_deleted"]:
    st.warning("This prop has been deleted by its creator.")
    st.stop()
if prop["state"] == "resolved":
    st.success(f"Result: {side_label(prop['result'])}")
    st.stop()
if not prop["accepting_wagers"]:
    st.info("This prop has expired and is no longer taking wagers.")
    st.stop()

# Restore a draft typed before the sign-in redirect
draft = pop_pending_wager(st.session_state, prop_id)
if draft:
    if draft.get("prediction") is not None:
        st.session_state["shared_prediction"] = side_label(draft["prediction"])
    if draft.get("bananas"):
        st.session_state["shared_bananas"] = int(draft["bananas"])
st.session_state.setdefault("shared_prediction", "Yes")
st.session_state.setdefault("shared_bananas", 10)

st.subheader("Place a Wager")
choice = st.radio("Your prediction", ["Yes", "No"], horizontal=True, key="shared_prediction")
bananas = st.number_input("Bananas", min_value=1, step=1, key="shared_bananas")

ctx = get_session()
label = "Place Wager" if ctx.signed_in else "Sign in to wager"
if st.button(label, type="primary"):
    if not ctx.signed_in:
        stash_pending_wager(st.session_state, prop_id, choice == "Yes", int(bananas))
        st.session_state["return_to"] = {"page": SHARED_PAGE, "prop_id": prop_id}
        st.switch_page(LOGIN_PAGE)
    w_status, w_data = api_call(
        "POST",
        f"/api/props/{prop_id}/wagers",
        {"prediction": choice == "Yes", "bananas": int(bananas)},
    )
    if w_status == 201:
        go_to_prop(prop_id, page=WAGER_PAGE)
    else:
        st.error(error_message(w_data, "Failed to place wager"))
