# pages/2_Expiry_Report.py

# ─── Ensure repo root is on sys.path ─────────────────────────────────
import sys, pathlib
ROOT = pathlib.Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.append(str(ROOT))
# ────────────────────────────────────────────────────────────────────

import streamlit as st

from coldstore.core.constants import EXPIRY_WARNING_DAYS
from coldstore.services.report_service import expiry_report, stock_frame
from coldstore.ui.helpers import csv_download_button
from coldstore.ui.state import bootstrap_page

ctx = bootstrap_page("Expiry Report", "⏳")
st.header("⏳ Expiry Report")

report = expiry_report(ctx.mirror.stock())
columns = ["item_code", "pcs", "kgs", "expiry_date", "location", "status"]

st.subheader(f"🔴 Expired ({len(report.expired)})")
if report.expired:
    expired_df = stock_frame(report.expired)[columns]
    st.dataframe(expired_df, use_container_width=True, hide_index=True)
    csv_download_button(expired_df, "Download expired CSV", "expired_stock.csv", key="dl_expired")
else:
    st.success("No expired stock.")

st.subheader(f"🟠 Expiring within {EXPIRY_WARNING_DAYS} days ({len(report.expiring_soon)})")
if report.expiring_soon:
    soon_df = stock_frame(report.expiring_soon)[columns]
    st.dataframe(soon_df, use_container_width=True, hide_index=True)
    csv_download_button(soon_df, "Download expiring CSV", "expiring_stock.csv", key="dl_soon")
else:
    st.success("Nothing expires in the warning window.")
