"""Configuration helpers: Streamlit secrets first, then environment variables."""
import logging
import os
from pathlib import Path
from typing import Optional
from zoneinfo import ZoneInfo

import streamlit as st
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

# Load a local .env (project root) so local development needs no exports.
_ENV_PATH = Path(__file__).resolve().parent.parent / ".env"
if _ENV_PATH.exists():
    load_dotenv(_ENV_PATH)

DEFAULT_TIMEZONE = "Asia/Karachi"


def get_setting(name: str, default: Optional[str] = None) -> Optional[str]:
    """Read a top-level setting from secrets, falling back to the environment."""
    try:
        if name in st.secrets:
            return str(st.secrets[name])
    except Exception:
        # No secrets.toml present
        pass
    return os.getenv(name, default)


def get_section(name: str) -> Optional[dict]:
    """Return a secrets section (e.g. ``[postgres]``) as a plain dict."""
    try:
        if name in st.secrets:
            return dict(st.secrets[name])
    except Exception:
        pass
    return None


def get_timezone() -> ZoneInfo:
    """Timezone used for day/week/month boundaries."""
    tz_name = get_setting("APP_TIMEZONE", DEFAULT_TIMEZONE)
    try:
        return ZoneInfo(tz_name)
    except Exception:
        logger.warning("Unknown APP_TIMEZONE %r, using %s", tz_name, DEFAULT_TIMEZONE)
        return ZoneInfo(DEFAULT_TIMEZONE)
