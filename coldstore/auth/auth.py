from typing import Iterable, Optional

import streamlit as st

from coldstore.auth.session import Session
from coldstore.config import Settings
from coldstore.models import User
from coldstore.services.user_service import authenticate


def get_session(users: Iterable[User]) -> Optional[Session]:
    """Rebuild the session from Streamlit state; role is re-read every render."""
    if not st.session_state.get("logged_in"):
        return None
    username = st.session_state.get("username", "")
    if not username:
        return None
    return Session.for_user(username, users)


def logout() -> None:
    st.session_state.logged_in = False
    st.session_state.username = ""
    st.session_state.pop("settings_unlocked", None)


def login_sidebar(users: Iterable[User], settings: Settings) -> Optional[Session]:
    """Render the login form (or the logged-in badge) in the sidebar.

    Returns the active :class:`Session`, or ``None`` while nobody is logged in.
    """
    users = list(users)
    session = get_session(users)
    if session is not None:
        with st.sidebar:
            st.markdown(f"**Logged in as:** {session.username} ({session.role})")
            if st.button("Logout", key="logout_button"):
                logout()
                st.rerun()
        return session

    with st.sidebar:
        with st.form("login_form"):
            st.subheader("Login")
            username = st.text_input("Username", key="login_username")
            password = st.text_input("Password", type="password", key="login_password")
            submitted = st.form_submit_button("Login")
        if submitted:
            ok, msg, stored_name = authenticate(
                users,
                username,
                password,
                fallback=(settings.fallback_admin_username, settings.fallback_admin_password),
            )
            if ok:
                st.session_state.username = stored_name
                st.session_state.logged_in = True
                st.rerun()
            else:
                st.error(msg)
    return None
