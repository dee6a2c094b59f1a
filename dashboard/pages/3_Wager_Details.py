"""Wager Details page."""

import sys, os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", ".."))

import streamlit as st
from dashboard.utils import (
    HOME_PAGE,
    WAGER_PAGE,
    api_call,
    error_message,
    format_expiry,
    go_to_prop,
    live_refresh,
    require_session,
    selected_prop_id,
    side_label,
    sidebar_account,
)

st.set_page_config(page_title="Wager Details | MonkeyBets", page_icon="🍌")

prop_id = selected_prop_id()
require_session(WAGER_PAGE, prop_id)
sidebar_account()

if not prop_id:
    st.page_link(HOME_PAGE, label="Back to home")
    st.stop()

live_refresh()

status, data = api_call("GET", f"/api/props/{prop_id}/wager")
if status != 200:
    st.error(error_message(data, "Failed to load wager"))
    st.page_link(HOME_PAGE, label="Back to home")
    st.stop()

prop = data["prop"]
wager = data["wager"]

st.title(prop["name"])
st.caption(f"Expires: {format_expiry(prop['expiry_date'])}")

if wager is None:
    st.info("You haven't wagered on this prop yet.")
    if data["can_wager"] and st.button("Place a wager", type="primary"):
        go_to_prop(prop_id)
    st.stop()

col1, col2, col3 = st.columns(3)
col1.metric("Prediction", side_label(wager["prediction"]))
col2.metric("Bananas", wager["bananas"])
col3.metric("Potential payout", f"{wager['potential_payout']:.2f} 🍌")

if wager["outcome"] == "won":
    st.success(f"You won! Result: {side_label(prop['result'])}")
elif wager["outcome"] == "lost":
    st.error(f"You lost. Result: {side_label(prop['result'])}")
else:
    odds = data["yes_odds"] if wager["prediction"] else data["no_odds"]
    st.info(f"Pending. Your side currently pays {odds:.2f}x.")

if st.button("View prop"):
    go_to_prop(prop_id)
