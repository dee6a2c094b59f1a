"""Prop Details page — pool, decimal odds, wagering and creator actions."""

import sys, os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", ".."))

import plotly.graph_objects as go
import streamlit as st
from dashboard.utils import (
    HOME_PAGE,
    PROP_PAGE,
    api_call,
    error_message,
    format_expiry,
    live_refresh,
    require_session,
    selected_prop_id,
    side_label,
    sidebar_account,
)

st.set_page_config(page_title="Prop Details | MonkeyBets", page_icon="🍌", layout="wide")

prop_id = selected_prop_id()
require_session(PROP_PAGE, prop_id)
sidebar_account()

if not prop_id:
    st.info("Pick a prop from the home page.")
    st.page_link(HOME_PAGE, label="Back to home")
    st.stop()

live_refresh()

status, data = api_call("GET", f"/api/props/{prop_id}")
if status in (404, 410):
    st.error(error_message(data, "Prop not found"))
    st.page_link(HOME_PAGE, label="Back to home")
    st.stop()
if status != 200:
    st.error(error_message(data, "Failed to load prop"))
    st.stop()

prop = data["prop"]
totals = data["totals"]

st.title(prop["name"])
st.caption(f"Expires: {format_expiry(prop['expiry_date'])}")

if prop["is_deleted"]:
    st.warning("This prop has been deleted by its creator.")
elif prop["state"] == "resolved":
    st.success(f"Result: {side_label(prop['result'])}")
elif prop["state"] == "expired_unresolved":
    st.info("This prop has expired and is waiting for its result.")

# --- Pool ---
m1, m2, m3 = st.columns(3)
m1.metric("Yes pays", f"{data['yes_odds']:.2f}x", data["yes_american"], delta_color="off")
m2.metric("No pays", f"{data['no_odds']:.2f}x", data["no_american"], delta_color="off")
m3.metric("Total pool", f"{totals['total_bananas']} 🍌")

if totals["total_bananas"] > 0:
    fig = go.Figure(go.Pie(
        labels=["Yes", "No"],
        values=[totals["yes_bananas"], totals["no_bananas"]],
        marker_colors=["#2ecc71", "#e74c3c"],
        hole=0.4,
    ))
    fig.update_layout(height=260, margin=dict(t=10, b=10, l=10, r=10))
    st.plotly_chart(fig, use_container_width=True)

st.text_input("Share link", data["share_url"], disabled=True)

# --- My wagers ---
if data["my_wagers"]:
    st.subheader("Your Wagers")
    for w in data["my_wagers"]:
        line = f"{w['bananas']} 🍌 on **{side_label(w['prediction'])}**"
        if w["outcome"] == "won":
            st.success(f"{line}: won!")
        elif w["outcome"] == "lost":
            st.error(f"{line}: lost")
        else:
            st.write(f"{line}, potential payout {w['potential_payout']:.2f} 🍌")

# --- Place wager ---
if data["can_wager"]:
    st.subheader("Place a Wager")
    with st.form("wager_form"):
        choice = st.radio("Your prediction", ["Yes", "No"], horizontal=True)
        bananas = st.number_input("Bananas", min_value=1, step=1, value=10)
        multiplier = data["yes_odds"] if choice == "Yes" else data["no_odds"]
        st.caption(f"Current multiplier {multiplier:.2f}x")
        placed = st.form_submit_button("Place Wager", type="primary")
    if placed:
        w_status, w_data = api_call(
            "POST",
            f"/api/props/{prop_id}/wagers",
            {"prediction": choice == "Yes", "bananas": int(bananas)},
        )
        if w_status == 201:
            st.success("Wager placed!")
            st.rerun()
        else:
            st.error(error_message(w_data, "Failed to place wager"))

# --- Creator actions ---
if data["can_set_result"]:
    st.subheader("Set Result")
    c_yes, c_no = st.columns(2)
    outcome = None
    if c_yes.button("Yes happened", type="primary"):
        outcome = True
    if c_no.button("No happened"):
        outcome = False
    if outcome is not None:
        r_status, r_data = api_call("PUT", f"/api/props/{prop_id}/result", {"result": outcome})
        if r_status == 200:
            st.rerun()
        else:
            st.error(error_message(r_data, "Failed to set result"))

if data["can_delete"]:
    with st.expander("Delete this prop"):
        st.write("Wagers already placed stay visible to their owners.")
        if st.button("Delete Prop"):
            d_status, d_data = api_call("DELETE", f"/api/props/{prop_id}")
            if d_status == 200:
                st.switch_page(HOME_PAGE)
            else:
                st.error(error_message(d_data, "Failed to delete prop"))
