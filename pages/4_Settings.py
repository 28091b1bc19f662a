# pages/4_Settings.py

# ─── Ensure repo root is on sys.path ─────────────────────────────────
import sys, pathlib
ROOT = pathlib.Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.append(str(ROOT))
# ────────────────────────────────────────────────────────────────────

import pandas as pd
import streamlit as st

from coldstore.core.constants import ALL_ROLES, ROLE_USER
from coldstore.core.logging import read_recent_logs
from coldstore.services.item_code_service import add_item_code, delete_item_code
from coldstore.services.user_service import add_user, check_settings_password, delete_user
from coldstore.ui.helpers import flash_and_rerun, show_error
from coldstore.ui.state import bootstrap_page

ctx = bootstrap_page("Settings", "⚙️")
st.header("⚙️ Settings")

if not st.session_state.get("settings_unlocked"):
    if not ctx.settings.settings_password:
        st.warning("Settings are locked: no SETTINGS_PASSWORD is configured.")
        st.stop()
    with st.form("settings_unlock_form"):
        candidate = st.text_input("Settings password", type="password")
        unlock = st.form_submit_button("Unlock")
    if unlock:
        if check_settings_password(candidate, ctx.settings.settings_password):
            st.session_state.settings_unlocked = True
            st.rerun()
        else:
            st.error("Incorrect password.")
    st.stop()

if st.button("🔒 Lock settings"):
    st.session_state.settings_unlocked = False
    st.rerun()

tab_codes, tab_users, tab_logs = st.tabs(["Item Codes", "Users", "Logs"])

# --- Item codes ---
with tab_codes:
    st.subheader("Item Codes")
    with st.form("add_item_code_form", clear_on_submit=True):
        new_code = st.text_input("New item code")
        if st.form_submit_button("Add"):
            ok, msg = add_item_code(ctx.store, ctx.mirror, new_code)
            if ok:
                flash_and_rerun(msg)
            else:
                show_error(msg)

    codes = ctx.mirror.item_codes()
    st.write(f"{len(codes)} code(s)")
    for code in codes:
        c1, c2, c3 = st.columns([3, 1, 1])
        c1.write(code)
        confirm = c2.checkbox("Confirm", key=f"confirm_del_code_{code}")
        if c3.button("Delete", key=f"del_code_{code}"):
            ok, msg = delete_item_code(ctx.store, ctx.mirror, code, confirm)
            if ok:
                flash_and_rerun(msg)
            else:
                show_error(msg)

# --- Users ---
with tab_users:
    st.subheader("Users")
    with st.form("add_user_form", clear_on_submit=True):
        c1, c2, c3 = st.columns(3)
        username = c1.text_input("Username")
        password = c2.text_input("Password", type="password")
        role = c3.selectbox("Role", ALL_ROLES, index=ALL_ROLES.index(ROLE_USER))
        if st.form_submit_button("Add user"):
            ok, msg = add_user(ctx.store, ctx.mirror, username, password, role)
            if ok:
                flash_and_rerun(msg)
            else:
                show_error(msg)

    users = sorted(ctx.mirror.users(), key=lambda u: u.username.lower())
    st.dataframe(
        pd.DataFrame([{"Username": u.username, "Role": u.role} for u in users]),
        use_container_width=True,
        hide_index=True,
    )
    target = st.selectbox("Delete user", [""] + [u.username for u in users], key="del_user_select")
    if st.button("Delete selected user", disabled=not target):
        ok, msg = delete_user(ctx.store, ctx.mirror, target, ctx.session.username)
        if ok:
            flash_and_rerun(msg)
        else:
            show_error(msg)

# --- Logs ---
with tab_logs:
    st.subheader("Recent log lines")
    logs = read_recent_logs(max_lines=200)
    if logs:
        st.code(logs, language="text")
    else:
        st.info("No log output yet.")
