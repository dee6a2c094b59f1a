"""Create Prop page — name + expiry form."""

import sys, os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", ".."))

from datetime import datetime, time, timedelta

import streamlit as st
from dashboard.utils import api_call, error_message, go_to_prop, require_session, sidebar_account

st.set_page_config(page_title="Create Prop | MonkeyBets", page_icon="🍌")
require_session("pages/1_Create_Prop.py")
sidebar_account()

st.title("Create a Prop")

tomorrow = datetime.utcnow() + timedelta(days=1)

with st.form("create_prop_form"):
    name = st.text_input(
        "Prop Name",
        max_chars=200,
        placeholder="Will the banana price increase by 20%?",
    )
    col1, col2 = st.columns(2)
    with col1:
        expiry_day = st.date_input("Expiry Date (UTC)", value=tomorrow.date(), min_value=datetime.utcnow().date())
    with col2:
        expiry_time = st.time_input("Expiry Time (UTC)", value=time(hour=tomorrow.hour, minute=0))

    submitted = st.form_submit_button("Create Prop", type="primary")

if submitted:
    expiry = datetime.combine(expiry_day, expiry_time)
    if not name.strip():
        st.error("Prop name is required.")
    elif expiry <= datetime.utcnow():
        st.error("Expiry date must be in the future.")
    else:
        status, data = api_call("POST", "/api/props", {"name": name, "expiry_date": expiry.isoformat()})
        if status == 201:
            go_to_prop(data["id"])
        else:
            st.error(error_message(data, "Failed to create prop"))
