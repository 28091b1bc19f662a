"""Dashboard forms for goods in, goods out, pallet shift and QC hold."""

from datetime import date
from typing import Any, Dict, List

import streamlit as st

from coldstore.core.constants import (
    LOT_AVAILABLE,
    LOT_HOLD,
    MAX_FORM_ROWS,
    PLACEHOLDER_SELECT_ITEM_CODE,
    PLACEHOLDER_SELECT_LOCATION,
    PLACEHOLDER_SELECT_STOCK,
    STORAGE_LOCATIONS,
)
from coldstore.models import MoveInstruction, RemovalInstruction, StockItem
from coldstore.services import approval_service, stock_service
from coldstore.ui.helpers import flash_and_rerun, show_error, show_row_errors, show_warning
from coldstore.ui.state import PageContext


def _lot_label(lot: StockItem) -> str:
    hold = " [HOLD]" if lot.status == LOT_HOLD else ""
    return (
        f"{lot.item_code} @ {lot.location} | {lot.pcs} PCS / {lot.kgs:.2f} KGS"
        f" | exp {lot.expiry_date}{hold}"
    )


def _iso(value: Any) -> str:
    return value.isoformat() if isinstance(value, date) else ""


# ─────────────────────────────────────────────────────────
# GOODS IN
# ─────────────────────────────────────────────────────────
def render_goods_in(ctx: PageContext) -> None:
    st.subheader("📥 Goods In")
    item_codes = ctx.mirror.item_codes()
    if not item_codes:
        st.warning("No item codes defined. Add some under Settings first.")
        return

    row_count = st.number_input(
        "Number of items", min_value=1, max_value=MAX_FORM_ROWS, value=1, key="gi_row_count"
    )
    with st.form("goods_in_form", clear_on_submit=False):
        rows: List[Dict[str, Any]] = []
        for idx in range(int(row_count)):
            st.markdown(f"**Item {idx + 1}**")
            cols = st.columns([3, 1, 1, 2, 2, 2])
            code = cols[0].selectbox(
                "Item Code*", [PLACEHOLDER_SELECT_ITEM_CODE] + item_codes, key=f"gi_code_{idx}"
            )
            pcs = cols[1].number_input("PCS*", min_value=0, step=1, key=f"gi_pcs_{idx}")
            kgs = cols[2].number_input(
                "KGS*", min_value=0.0, step=0.01, format="%.2f", key=f"gi_kgs_{idx}"
            )
            production = cols[3].date_input("Prod. Date", value=None, key=f"gi_prod_{idx}")
            expiry = cols[4].date_input("Expiry Date*", value=None, key=f"gi_exp_{idx}")
            location = cols[5].selectbox(
                "Location*", [PLACEHOLDER_SELECT_LOCATION] + STORAGE_LOCATIONS, key=f"gi_loc_{idx}"
            )
            rows.append(
                {
                    "itemCode": "" if code == PLACEHOLDER_SELECT_ITEM_CODE else code,
                    "pcs": pcs,
                    "kgs": kgs,
                    "productionDate": _iso(production),
                    "expiryDate": _iso(expiry),
                    "location": "" if location == PLACEHOLDER_SELECT_LOCATION else location,
                }
            )
        confirm_expired = st.checkbox("Accept items that are already past their expiry date")
        submitted = st.form_submit_button("Submit Goods In")

    if not submitted:
        return
    errors = stock_service.validate_goods_in_rows(rows)
    if errors:
        show_row_errors(errors)
        return
    expired = stock_service.expired_rows(rows)
    if expired and not confirm_expired:
        listed = ", ".join(str(i + 1) for i in expired)
        st.warning(f"Item(s) {listed} are already expired. Tick the confirmation box to proceed.")
        return

    lots = stock_service.build_lots(rows)
    ok, msg = approval_service.submit_goods_in(ctx.session, ctx.store, ctx.mirror, lots)
    if ok:
        flash_and_rerun(msg)
    else:
        show_error(msg)


# ─────────────────────────────────────────────────────────
# GOODS OUT
# ─────────────────────────────────────────────────────────
def render_goods_out(ctx: PageContext) -> None:
    st.subheader("📤 Goods Out")
    lots = stock_service.selectable_for_goods_out(ctx.mirror.stock())
    if not lots:
        st.info("No stock available for goods out.")
        return
    by_id = {lot.id: lot for lot in lots}
    options = [""] + sorted(by_id, key=lambda i: (by_id[i].item_code, by_id[i].location))

    row_count = st.number_input(
        "Number of items", min_value=1, max_value=MAX_FORM_ROWS, value=1, key="go_row_count"
    )
    with st.form("goods_out_form", clear_on_submit=False):
        rows: List[Dict[str, Any]] = []
        for idx in range(int(row_count)):
            cols = st.columns([5, 1, 1])
            stock_id = cols[0].selectbox(
                "Stock Item*",
                options,
                format_func=lambda i: PLACEHOLDER_SELECT_STOCK if not i else _lot_label(by_id[i]),
                key=f"go_stock_{idx}",
            )
            pcs = cols[1].number_input("PCS*", min_value=0, step=1, key=f"go_pcs_{idx}")
            kgs = cols[2].number_input(
                "KGS*", min_value=0.0, step=0.01, format="%.2f", key=f"go_kgs_{idx}"
            )
            rows.append({"stockId": stock_id, "pcs": pcs, "kgs": kgs})
        submitted = st.form_submit_button("Submit Goods Out")

    if not submitted:
        return
    errors = stock_service.validate_goods_out_rows(rows, ctx.mirror.stock_by_id())
    if errors:
        show_row_errors(errors)
        return
    instructions = [
        RemovalInstruction(stock_id=r["stockId"], pcs=int(r["pcs"]), kgs=float(r["kgs"]))
        for r in rows
    ]
    ok, msg = approval_service.submit_goods_out(ctx.session, ctx.store, ctx.mirror, instructions)
    if ok:
        flash_and_rerun(msg)
    else:
        show_error(msg)


# ─────────────────────────────────────────────────────────
# PALLET SHIFT
# ─────────────────────────────────────────────────────────
def render_pallet_shift(ctx: PageContext) -> None:
    st.subheader("🔀 Pallet Shift")
    lots = ctx.mirror.stock()
    if not lots:
        st.info("No stock to move.")
        return
    by_id = {lot.id: lot for lot in lots}
    options = [""] + sorted(by_id, key=lambda i: (by_id[i].location, by_id[i].item_code))

    with st.form("pallet_shift_form"):
        stock_id = st.selectbox(
            "Item to move*",
            options,
            format_func=lambda i: PLACEHOLDER_SELECT_STOCK if not i else _lot_label(by_id[i]),
            key="ps_stock",
        )
        cols = st.columns(3)
        new_location = cols[0].selectbox(
            "New Location*", [PLACEHOLDER_SELECT_LOCATION] + STORAGE_LOCATIONS, key="ps_location"
        )
        pcs = cols[1].number_input("PCS to move*", min_value=0, step=1, key="ps_pcs")
        kgs = cols[2].number_input(
            "KGS to move*", min_value=0.0, step=0.01, format="%.2f", key="ps_kgs"
        )
        st.caption("Moving the full quantity relocates the lot; less splits it.")
        submitted = st.form_submit_button("Move Pallet")

    if not submitted:
        return
    instruction = MoveInstruction(
        stock_id=stock_id,
        new_location="" if new_location == PLACEHOLDER_SELECT_LOCATION else new_location,
        pcs=int(pcs),
        kgs=float(kgs),
    )
    ok, msg = approval_service.submit_pallet_shift(ctx.session, ctx.store, ctx.mirror, instruction)
    if ok:
        flash_and_rerun(msg)
    else:
        show_error(msg)


# ─────────────────────────────────────────────────────────
# QC HOLD / RELEASE
# ─────────────────────────────────────────────────────────
def render_hold_release(ctx: PageContext) -> None:
    st.subheader("🛑 QC Hold / Release")
    lots = ctx.mirror.stock()
    if not lots:
        st.info("No stock lots.")
        return
    by_id = {lot.id: lot for lot in lots}
    options = [""] + sorted(by_id, key=lambda i: (by_id[i].item_code, by_id[i].location))

    with st.form("hold_release_form"):
        lot_id = st.selectbox(
            "Lot*",
            options,
            format_func=lambda i: PLACEHOLDER_SELECT_STOCK if not i else _lot_label(by_id[i]),
            key="hr_lot",
        )
        reason = st.text_input("Hold reason (required to place on hold)", key="hr_reason")
        cols = st.columns(2)
        hold = cols[0].form_submit_button("Place on Hold")
        release = cols[1].form_submit_button("Release")

    if not (hold or release):
        return
    if not lot_id:
        show_warning("Please select a lot.")
        return
    status = LOT_HOLD if hold else LOT_AVAILABLE
    ok, msg = approval_service.change_lot_status(
        ctx.session, ctx.store, ctx.mirror, lot_id, status, reason
    )
    if ok:
        flash_and_rerun(msg)
    else:
        show_error(msg)
