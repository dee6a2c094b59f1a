"""
Streamlit Dashboard for MonkeyBets
Home: your live props and your live wagers, with current odds
"""

import sys, os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pandas as pd
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
    side_label,
    sidebar_account,
)

st.set_page_config(
    page_title="MonkeyBets",
    page_icon="🍌",
    layout="wide",
    initial_sidebar_state="expanded",
)

require_session(HOME_PAGE)
sidebar_account()
live_refresh()

st.title("🍌 MonkeyBets")

with st.spinner("Loading your props..."):
    status, data = api_call("GET", "/api/dashboard")

if status != 200:
    st.error(error_message(data, "Failed to load your dashboard"))
    st.stop()

created = data["created_props"]
active = data["active_wagers"]


# ==============================================================================
# YOUR PROPS
# ==============================================================================

if created:
    st.subheader("Your Props")
    for item in created:
        prop = item["prop"]
        with st.container(border=True):
            col_name, col_odds, col_actions = st.columns([3, 2, 2])
            with col_name:
                st.markdown(f"**{prop['name']}**")
                st.caption(f"Expires: {format_expiry(prop['expiry_date'], with_time=False)}")
                if prop["state"] == "expired_unresolved":
                    st.warning("Expired: set the result")
            with col_odds:
                st.metric("Yes", item["yes_odds"])
                st.metric("No", item["no_odds"])
            with col_actions:
                if st.button("Open", key=f"open_{prop['id']}"):
                    go_to_prop(prop["id"])
                st.text_input("Share link", item["share_url"], key=f"share_{prop['id']}", disabled=True)
                if st.button("Delete Prop", key=f"delete_{prop['id']}"):
                    st.session_state["confirm_delete"] = prop["id"]

            if st.session_state.get("confirm_delete") == prop["id"]:
                st.warning("Are you sure you want to delete this prop?")
                c1, c2 = st.columns(2)
                if c1.button("Yes, delete", key=f"confirm_{prop['id']}", type="primary"):
                    del_status, del_data = api_call("DELETE", f"/api/props/{prop['id']}")
                    st.session_state.pop("confirm_delete", None)
                    if del_status == 200:
                        st.rerun()
                    else:
                        st.error(error_message(del_data, "Failed to delete prop"))
                if c2.button("Cancel", key=f"cancel_{prop['id']}"):
                    st.session_state.pop("confirm_delete", None)
                    st.rerun()


# ==============================================================================
# YOUR WAGERS
# ==============================================================================

st.subheader("Your Active Wagers")

if active:
    df = pd.DataFrame(active)
    df["side"] = df["prediction"].map(side_label)
    df["expires"] = df["expiry_date"].map(lambda v: format_expiry(v, with_time=False))
    st.dataframe(
        df[["prop_name", "side", "bananas", "your_odds", "expires"]].rename(columns={
            "prop_name": "Prop",
            "side": "Side",
            "bananas": "Bananas",
            "your_odds": "Your Odds",
            "expires": "Expires",
        }),
        use_container_width=True,
        hide_index=True,
    )

    labels = {f"{w['prop_name']} ({side_label(w['prediction'])}, {w['bananas']} 🍌)": w["prop_id"] for w in active}
    picked = st.selectbox("View wager", list(labels))
    if st.button("Open wager"):
        go_to_prop(labels[picked], page=WAGER_PAGE)
else:
    st.info("Find an interesting prop to place your first bet!")


if not created and not active:
    st.markdown("---")
    if st.button("Create a Prop", type="primary"):
        st.switch_page("pages/1_Create_Prop.py")


# Footer
st.markdown("---")
st.caption("MonkeyBets v1.0 | Built with Streamlit")
