# pages/3_Locations.py

# ─── Ensure repo root is on sys.path ─────────────────────────────────
import sys, pathlib
ROOT = pathlib.Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.append(str(ROOT))
# ────────────────────────────────────────────────────────────────────

import streamlit as st

from coldstore.core.constants import STORAGE_POSITIONS
from coldstore.services.report_service import location_occupancy
from coldstore.ui.state import bootstrap_page
from coldstore.ui.theme import occupancy_tile

ctx = bootstrap_page("Locations", "🗺️")
st.header("🗺️ Storage Locations")
st.caption("Empty · 1–2 lots · 3–5 lots · 6+ lots")

racks = location_occupancy(ctx.mirror.stock())
for rack, slots in racks.items():
    st.subheader(f"Rack {rack}")
    cols = st.columns(STORAGE_POSITIONS)
    for idx, slot in enumerate(slots):
        with cols[idx % STORAGE_POSITIONS]:
            st.markdown(occupancy_tile(slot.slot, slot.label, slot.level), unsafe_allow_html=True)
            if slot.lots:
                with st.expander("Contents"):
                    for lot in slot.lots:
                        st.write(f"{lot.item_code}: {lot.pcs} PCS / {lot.kgs:.2f} KGS")
