import math
from typing import Dict, List, Optional, Tuple

import pandas as pd
import streamlit as st

from coldstore.services.report_service import to_csv_bytes


def pagination_controls(
    total_items: int,
    *,
    current_page_key: str,
    items_per_page_key: str,
    items_per_page_options: List[int] | None = None,
) -> Tuple[int, int]:
    """Render paging buttons and return the slice bounds for the current page."""
    if items_per_page_options is None:
        items_per_page_options = [10, 25, 50, 100]

    if st.session_state.get(items_per_page_key) not in items_per_page_options:
        st.session_state[items_per_page_key] = items_per_page_options[0]

    st.selectbox("Rows per page:", options=items_per_page_options, key=items_per_page_key)
    per_page = st.session_state[items_per_page_key]

    total_pages = max(math.ceil(total_items / per_page), 1)
    current_page = min(max(st.session_state.get(current_page_key, 1), 1), total_pages)
    st.session_state[current_page_key] = current_page

    cols = st.columns(3)
    if cols[0].button("⬅️ Previous", key=f"{current_page_key}_prev_btn", disabled=current_page == 1):
        st.session_state[current_page_key] -= 1
        st.rerun()
    cols[1].write(f"Page {current_page} of {total_pages}")
    if cols[2].button(
        "Next ➡️", key=f"{current_page_key}_next_btn", disabled=current_page == total_pages
    ):
        st.session_state[current_page_key] += 1
        st.rerun()

    start_idx = (current_page - 1) * per_page
    return start_idx, start_idx + per_page


def show_success(msg: str) -> None:
    st.toast(msg, icon="✅")


def show_warning(msg: str) -> None:
    st.toast(msg, icon="⚠️")


def show_error(msg: str) -> None:
    st.toast(msg, icon="❌")


def show_result(ok: bool, msg: str) -> None:
    """Toast a ``(success, message)`` pair returned by a service call."""
    if ok:
        show_success(msg)
    else:
        show_error(msg)


def show_row_errors(errors: Dict[Optional[int], str]) -> None:
    """Render form-level and per-row validation messages."""
    if None in errors:
        st.error(errors[None])
    for idx in sorted(k for k in errors if k is not None):
        st.warning(f"Row {idx + 1}: {errors[idx]}")


def csv_download_button(df: pd.DataFrame, label: str, file_name: str, key: str) -> None:
    st.download_button(
        label,
        data=to_csv_bytes(df),
        file_name=file_name,
        mime="text/csv",
        disabled=df.empty,
        key=key,
    )


def flash_and_rerun(msg: str) -> None:
    """Keep a success message across ``st.rerun`` and show it on the next render."""
    st.session_state["_flash"] = msg
    st.rerun()


def show_flashed() -> None:
    msg = st.session_state.pop("_flash", None)
    if msg:
        show_success(msg)
