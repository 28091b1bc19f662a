# cold_storage_app.py
# Main Streamlit entry point: dashboard with stock overview and movement forms.

import streamlit as st

from coldstore.services.report_service import (
    dashboard_stats,
    search_stock,
    stock_frame,
)
from coldstore.ui.forms import (
    render_goods_in,
    render_goods_out,
    render_hold_release,
    render_pallet_shift,
)
from coldstore.ui.state import bootstrap_page
from coldstore.ui.theme import highlight_stock

ctx = bootstrap_page("Cold Storage Dashboard")
lots = ctx.mirror.stock()

st.title("❄️ Cold Storage Dashboard")

stats = dashboard_stats(lots)
m1, m2, m3, m4, m5 = st.columns(5)
m1.metric("Lots", stats.lot_count)
m2.metric("Total PCS", f"{stats.total_pcs:,}")
m3.metric("Total KGS", f"{stats.total_kgs:,.2f}")
m4.metric("Expired", stats.expired_count)
m5.metric("Expiring ≤30 days", stats.expiring_soon_count)

st.divider()

if ctx.session.can_submit:
    tab_names = ["📥 Goods In", "📤 Goods Out", "🔀 Pallet Shift"]
    if ctx.session.is_admin:
        tab_names.append("🛑 QC Hold")
    tabs = st.tabs(tab_names)
    with tabs[0]:
        render_goods_in(ctx)
    with tabs[1]:
        render_goods_out(ctx)
    with tabs[2]:
        render_pallet_shift(ctx)
    if ctx.session.is_admin:
        with tabs[3]:
            render_hold_release(ctx)
    if not ctx.session.is_admin:
        st.caption("Goods In and Goods Out are sent to an administrator for approval.")
    st.divider()

st.subheader("📦 Current Stock")
term = st.text_input("Search by item code or location", key="dashboard_search")
filtered = search_stock(lots, term)
if not filtered:
    st.info("No stock found.")
else:
    df = stock_frame(sorted(filtered, key=lambda l: (l.item_code, l.expiry_date)))
    st.dataframe(
        highlight_stock(df),
        use_container_width=True,
        hide_index=True,
        column_order=[
            "item_code",
            "pcs",
            "kgs",
            "production_date",
            "expiry_date",
            "location",
            "status",
            "hold_reason",
        ],
        column_config={
            "item_code": "Item Code",
            "pcs": st.column_config.NumberColumn("PCS", format="%d"),
            "kgs": st.column_config.NumberColumn("KGS", format="%.2f"),
            "production_date": "Prod. Date",
            "expiry_date": "Expiry Date",
            "location": "Location",
            "status": "Status",
            "hold_reason": "Hold Reason",
        },
    )
    st.caption("Red: expired. Amber: expiring within 30 days. Blue: on QC hold.")
