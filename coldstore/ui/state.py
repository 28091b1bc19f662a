"""Shared per-process resources and the common page preamble."""

import logging
from dataclasses import dataclass
from datetime import timezone, tzinfo
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import streamlit as st

from coldstore.auth.auth import login_sidebar
from coldstore.auth.session import Session
from coldstore.config import Settings, load_settings
from coldstore.core.logging import configure_logging
from coldstore.exceptions import StoreError
from coldstore.services.mirror import StoreMirror
from coldstore.services.realtime import RealtimeListener
from coldstore.services.store import SupabaseStore
from coldstore.services.supabase_client import get_supabase_client
from coldstore.ui.helpers import show_flashed
from coldstore.ui.navigation import render_sidebar_nav

logger = logging.getLogger(__name__)


@dataclass
class PageContext:
    settings: Settings
    store: SupabaseStore
    mirror: StoreMirror
    session: Session

    @property
    def report_tz(self) -> tzinfo:
        try:
            return ZoneInfo(self.settings.report_timezone)
        except (ZoneInfoNotFoundError, ValueError):
            logger.warning("Unknown REPORT_TIMEZONE %s; using UTC", self.settings.report_timezone)
            return timezone.utc


@st.cache_resource(show_spinner="Connecting to database…")
def get_store() -> Optional[SupabaseStore]:
    client = get_supabase_client()
    if client is None:
        return None
    return SupabaseStore(client)


@st.cache_resource(show_spinner="Loading inventory…")
def get_mirror(_store: SupabaseStore) -> StoreMirror:
    """Load every table once per process and start the realtime listener."""
    settings = load_settings()
    mirror = StoreMirror(track_echoes=settings.realtime_enabled)
    mirror.load(_store)
    if settings.realtime_enabled:
        RealtimeListener(settings.supabase_url, settings.supabase_key, mirror).start()
    return mirror


def bootstrap_page(title: str, icon: str = "❄️") -> PageContext:
    """Set up the page, require a login and return what handlers need.

    Stops the script when the store is unreachable or nobody is logged in.
    """
    configure_logging()
    st.set_page_config(page_title=title, page_icon=icon, layout="wide")

    settings = load_settings()
    store = get_store()
    if store is None:
        st.error("Supabase is not configured. Set SUPABASE_URL and SUPABASE_KEY.")
        st.stop()
    try:
        mirror = get_mirror(store)
    except StoreError as exc:
        st.error(f"Failed to load data from the database: {exc}")
        st.stop()

    show_flashed()
    changed = mirror.drain()
    if changed:
        logger.debug("Applied %d remote change(s)", changed)

    session = login_sidebar(mirror.users(), settings)
    render_sidebar_nav(
        pending_count=len(mirror.pending_requests()) if session and session.is_admin else 0,
        include_clear_logs_button=bool(session and session.is_admin),
    )
    if st.sidebar.button("🔄 Reload data", key="reload_data"):
        try:
            mirror.load(store)
        except StoreError as exc:
            st.sidebar.error(f"Reload failed: {exc}")
        else:
            st.rerun()

    if session is None:
        st.title(f"{icon} {title}")
        st.info("Please log in from the sidebar to continue.")
        st.stop()
    return PageContext(settings=settings, store=store, mirror=mirror, session=session)


def require_admin(ctx: PageContext) -> None:
    if not ctx.session.is_admin:
        st.warning("This page is only available to administrators.")
        st.stop()
