import streamlit as st

from coldstore.core.logging import flush_logs


def render_sidebar_nav(pending_count: int = 0, include_clear_logs_button: bool = False) -> None:
    """Render sidebar navigation links to all app pages."""
    with st.sidebar:
        st.page_link("cold_storage_app.py", label="🏠 Dashboard")
        st.page_link("pages/1_Reports.py", label="📊 Reports")
        st.page_link("pages/2_Expiry_Report.py", label="⏳ Expiry Report")
        st.page_link("pages/3_Locations.py", label="🗺️ Locations")
        pending_label = "📝 Pending Requests"
        if pending_count:
            pending_label += f" ({pending_count})"
        st.page_link("pages/5_Pending_Requests.py", label=pending_label)
        st.page_link("pages/4_Settings.py", label="⚙️ Settings")
        if include_clear_logs_button and st.button("Clear Logs"):
            flush_logs()
            st.toast("Logs cleared")
