# pages/1_Reports.py

# ─── Ensure repo root is on sys.path ─────────────────────────────────
import sys, pathlib
ROOT = pathlib.Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.append(str(ROOT))
# ────────────────────────────────────────────────────────────────────

from datetime import date, timedelta

import pandas as pd
import streamlit as st

from coldstore.core.constants import ALL_TX_TYPES
from coldstore.exceptions import ReportWindowError
from coldstore.services.report_service import (
    ending_stock,
    ending_stock_frame,
    movement_report,
    movement_report_frame,
    transaction_history_rows,
)
from coldstore.ui.helpers import csv_download_button, pagination_controls
from coldstore.ui.state import bootstrap_page

ctx = bootstrap_page("Reports", "📊")
st.header("📊 Reports")

tab_ending, tab_movement, tab_history = st.tabs(
    ["Ending Stock", "Movement Report", "Transaction History"]
)

# --- Ending stock ---
with tab_ending:
    st.subheader("Ending Stock by Item Code")
    ending_df = ending_stock_frame(ending_stock(ctx.mirror.stock()))
    if ending_df.empty:
        st.info("No stock on hand.")
    else:
        st.dataframe(ending_df, use_container_width=True, hide_index=True)
    csv_download_button(
        ending_df,
        "Download CSV",
        f"ending_stock_{date.today().isoformat()}.csv",
        key="dl_ending_stock",
    )

# --- Movement report ---
with tab_movement:
    st.subheader("Stock Movement Report")
    c1, c2 = st.columns(2)
    start = c1.date_input("Start date", value=date.today() - timedelta(days=30), key="mv_start")
    end = c2.date_input("End date", value=date.today(), key="mv_end")
    try:
        rows = movement_report(ctx.mirror.transactions(), start, end, ctx.report_tz)
    except ReportWindowError as exc:
        st.warning(str(exc))
    else:
        movement_df = movement_report_frame(rows)
        if movement_df.empty:
            st.info("No transactions recorded yet.")
        else:
            st.dataframe(movement_df, use_container_width=True, hide_index=True)
        csv_download_button(
            movement_df,
            "Download CSV",
            f"movement_report_{start.isoformat()}_to_{end.isoformat()}.csv",
            key="dl_movement",
        )

# --- Transaction history ---
with tab_history:
    st.subheader("Transaction History")
    f1, f2 = st.columns(2)
    type_filter = f1.multiselect("Type", ALL_TX_TYPES, default=ALL_TX_TYPES, key="hist_types")
    code_filter = f2.text_input("Item code contains", key="hist_code")

    transactions = [
        tx
        for tx in ctx.mirror.transactions()
        if tx.type in type_filter
        and code_filter.strip().lower() in tx.item.item_code.lower()
    ]
    history_df = pd.DataFrame(transaction_history_rows(transactions))
    if history_df.empty:
        st.info("No transactions match the filters.")
    else:
        start_idx, end_idx = pagination_controls(
            len(history_df),
            current_page_key="hist_page",
            items_per_page_key="hist_per_page",
        )
        st.dataframe(history_df.iloc[start_idx:end_idx], use_container_width=True, hide_index=True)
    csv_download_button(
        history_df,
        "Download CSV",
        f"transactions_{date.today().isoformat()}.csv",
        key="dl_history",
    )
