# pages/5_Pending_Requests.py

# ─── Ensure repo root is on sys.path ─────────────────────────────────
import sys, pathlib
ROOT = pathlib.Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.append(str(ROOT))
# ────────────────────────────────────────────────────────────────────

import pandas as pd
import streamlit as st

from coldstore.core.constants import REQUEST_IN, STORAGE_LOCATIONS
from coldstore.models import PendingRequest, parse_date, parse_timestamp
from coldstore.services.approval_service import (
    approve_request,
    reject_request,
    revise_instruction,
    revise_lot,
)
from coldstore.ui.helpers import flash_and_rerun, show_error
from coldstore.ui.state import bootstrap_page, require_admin

ctx = bootstrap_page("Pending Requests", "📝")
require_admin(ctx)
st.header("📝 Pending Requests")

pending = sorted(ctx.mirror.pending_requests(), key=lambda r: r.timestamp)
if not pending:
    st.success("No pending requests.")
    st.stop()

stock_by_id = ctx.mirror.stock_by_id()


def _summary_frame(request: PendingRequest) -> pd.DataFrame:
    if request.kind == REQUEST_IN:
        return pd.DataFrame(
            [
                {
                    "Item Code": lot.item_code,
                    "PCS": lot.pcs,
                    "KGS": lot.kgs,
                    "Prod. Date": lot.production_date or "",
                    "Expiry Date": lot.expiry_date,
                    "Location": lot.location,
                }
                for lot in request.payload.lots
            ]
        )
    records = []
    for ins in request.payload.instructions:
        lot = stock_by_id.get(ins.stock_id)
        records.append(
            {
                "Item Code": lot.item_code if lot else "(missing)",
                "Location": lot.location if lot else "",
                "PCS": ins.pcs,
                "KGS": ins.kgs,
                "Available PCS": lot.pcs if lot else 0,
                "Available KGS": lot.kgs if lot else 0.0,
            }
        )
    return pd.DataFrame(records)


def _edited_payload(request: PendingRequest):
    payload = request.payload
    if request.kind == REQUEST_IN:
        for idx, lot in enumerate(payload.lots):
            c1, c2, c3 = st.columns(3)
            pcs = c1.number_input(
                f"{lot.item_code} PCS", min_value=0, value=lot.pcs, key=f"{request.id}_pcs_{idx}"
            )
            kgs = c2.number_input(
                f"{lot.item_code} KGS",
                min_value=0.0,
                value=float(lot.kgs),
                format="%.2f",
                key=f"{request.id}_kgs_{idx}",
            )
            slots = STORAGE_LOCATIONS if lot.location in STORAGE_LOCATIONS else [lot.location] + STORAGE_LOCATIONS
            location = c3.selectbox(
                f"{lot.item_code} Location",
                slots,
                index=slots.index(lot.location),
                key=f"{request.id}_loc_{idx}",
            )
            d1, d2 = st.columns(2)
            production = d1.date_input(
                f"{lot.item_code} Prod. Date",
                value=parse_date(lot.production_date),
                key=f"{request.id}_prod_{idx}",
            )
            expiry = d2.date_input(
                f"{lot.item_code} Expiry Date",
                value=parse_date(lot.expiry_date),
                key=f"{request.id}_exp_{idx}",
            )
            payload = revise_lot(
                payload,
                idx,
                pcs=int(pcs),
                kgs=float(kgs),
                location=location,
                production_date=production.isoformat() if production else None,
                expiry_date=expiry.isoformat() if expiry else "",
            )
        return payload

    for idx, ins in enumerate(payload.instructions):
        lot = stock_by_id.get(ins.stock_id)
        label = lot.item_code if lot else ins.stock_id
        c1, c2 = st.columns(2)
        pcs = c1.number_input(
            f"{label} PCS", min_value=0, value=ins.pcs, key=f"{request.id}_pcs_{idx}"
        )
        kgs = c2.number_input(
            f"{label} KGS",
            min_value=0.0,
            value=float(ins.kgs),
            format="%.2f",
            key=f"{request.id}_kgs_{idx}",
        )
        payload = revise_instruction(payload, idx, pcs=int(pcs), kgs=float(kgs))
    return payload


for request in pending:
    submitted_at = parse_timestamp(request.timestamp).astimezone(ctx.report_tz)
    title = (
        f"{'📥 Goods In' if request.kind == REQUEST_IN else '📤 Goods Out'} · "
        f"{request.requester} · {submitted_at:%Y-%m-%d %H:%M}"
    )
    with st.expander(title, expanded=True):
        st.dataframe(_summary_frame(request), use_container_width=True, hide_index=True)

        edit = st.toggle("Edit before approving", key=f"{request.id}_edit")
        edited = _edited_payload(request) if edit else None

        c1, c2, c3 = st.columns([1, 1, 2])
        if c1.button("✅ Approve", key=f"{request.id}_approve"):
            ok, msg = approve_request(ctx.session, ctx.store, ctx.mirror, request, edited)
            if ok:
                flash_and_rerun(msg)
            else:
                show_error(msg)
        confirm = c3.checkbox("Confirm rejection", key=f"{request.id}_confirm")
        if c2.button("🗑️ Reject", key=f"{request.id}_reject"):
            ok, msg = reject_request(ctx.session, ctx.store, ctx.mirror, request, confirm)
            if ok:
                flash_and_rerun(msg)
            else:
                show_error(msg)
