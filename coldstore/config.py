import logging
import os
from dataclasses import dataclass
from typing import Any, Dict, Optional

import streamlit as st
from streamlit.errors import StreamlitAPIException

logger = logging.getLogger(__name__)

# Mapping of configuration keys to their corresponding environment variables
_ENV_VARS = {
    "supabase_url": "SUPABASE_URL",
    "supabase_key": "SUPABASE_KEY",
    "sheet_logger_url": "SHEET_LOGGER_URL",
    "settings_password": "SETTINGS_PASSWORD",
    "fallback_admin_password": "FALLBACK_ADMIN_PASSWORD",
    "realtime_enabled": "REALTIME_ENABLED",
    "report_timezone": "REPORT_TIMEZONE",
}

_SECRETS_SECTION = "coldstore"

_DEFAULTS = {
    "fallback_admin_password": "admin123",
    "realtime_enabled": "true",
    "report_timezone": "UTC",
}


@dataclass(frozen=True)
class Settings:
    supabase_url: Optional[str] = None
    supabase_key: Optional[str] = None
    sheet_logger_url: Optional[str] = None
    settings_password: Optional[str] = None
    fallback_admin_username: str = "admin"
    fallback_admin_password: str = "admin123"
    realtime_enabled: bool = True
    report_timezone: str = "UTC"


def _secrets_section() -> Dict[str, Any]:
    """Return the ``[coldstore]`` section of Streamlit secrets, or ``{}``."""
    try:
        if _SECRETS_SECTION in st.secrets:
            return dict(st.secrets[_SECRETS_SECTION])
    except (FileNotFoundError, StreamlitAPIException):
        logger.debug("No Streamlit secrets file found")
    return {}


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in {"1", "true", "yes", "on"}


def load_settings() -> Settings:
    """Return settings from environment variables or Streamlit secrets.

    Environment variables take precedence. Keys missing from the environment
    are looked up in the ``[coldstore]`` secrets section, then defaulted.
    """
    values: Dict[str, Any] = {k: os.getenv(env) for k, env in _ENV_VARS.items()}
    if not all(values.values()):
        secrets = _secrets_section()
        for key, value in values.items():
            if not value and secrets.get(key):
                values[key] = secrets[key]
    for key, default in _DEFAULTS.items():
        if not values.get(key):
            values[key] = default

    return Settings(
        supabase_url=values["supabase_url"],
        supabase_key=values["supabase_key"],
        sheet_logger_url=values["sheet_logger_url"],
        settings_password=values["settings_password"],
        fallback_admin_password=str(values["fallback_admin_password"]),
        realtime_enabled=_as_bool(values["realtime_enabled"]),
        report_timezone=str(values["report_timezone"]),
    )
