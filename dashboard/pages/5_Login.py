"""Login page — phone verification, then sign in or sign up."""

import sys, os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", ".."))

import streamlit as st
from dashboard.utils import HOME_PAGE, api_call, error_message, get_session

st.set_page_config(page_title="Sign in | MonkeyBets", page_icon="🍌")

ctx = get_session()


def _return_to_origin():
    target = st.session_state.pop("return_to", None) or {"page": HOME_PAGE}
    if target.get("prop_id"):
        st.session_state["prop_id"] = target["prop_id"]
    st.switch_page(target["page"])


if ctx.signed_in:
    _return_to_origin()

st.title("🍌 MonkeyBets")

mode = st.radio("Mode", ["Sign in", "Sign up"], horizontal=True, label_visibility="collapsed")
endpoint = "/api/auth/sign-in" if mode == "Sign in" else "/api/auth/sign-up"

phone = st.text_input("Phone number", placeholder="(555) 123-4567")

if st.button("Send code"):
    status, data = api_call("POST", "/api/auth/send-code", {"phone": phone})
    if status == 200:
        st.session_state["code_sent_to"] = phone
        st.success("Code sent! Check your messages.")
    else:
        st.error(error_message(data, "Could not send verification code"))

if st.session_state.get("code_sent_to"):
    with st.form("verify_form"):
        code = st.text_input("Verification code", max_chars=10)
        submitted = st.form_submit_button(mode, type="primary")
    if submitted:
        status, data = api_call("POST", endpoint, {"phone": st.session_state["code_sent_to"], "code": code})
        if status in (200, 201):
            ctx.set(data["monkey"], data["token"])
            st.session_state.pop("code_sent_to", None)
            _return_to_origin()
        else:
            st.error(error_message(data, "Verification failed"))
