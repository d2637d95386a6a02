# /// script
# requires-python = ">=3.12"
# dependencies = ["pydantic>=2.0"]
# ///
"""Centralized configuration for environment variables."""

import os
from pathlib import Path

from data.store import DEFAULT_TABLE, FileRecordStore, RecordStore, RestRecordStore
from sync import DEFAULT_POLL_INTERVAL, ECHO_WINDOW_MS

STORE_ENV = "SCOREBOOK_STORE"
DATA_PATH_ENV = "SCOREBOOK_DATA_PATH"
TABLE_ENV = "SCOREBOOK_TABLE"
DEBOUNCE_ENV = "SCOREBOOK_DEBOUNCE_MS"
ECHO_WINDOW_ENV = "SCOREBOOK_ECHO_WINDOW_MS"
POLL_INTERVAL_ENV = "SCOREBOOK_POLL_INTERVAL"
SUPABASE_URL_ENV = "SUPABASE_URL"
SUPABASE_KEY_ENV = "SUPABASE_ANON_KEY"

DEFAULT_DATA_PATH = Path(__file__).resolve().parent / "data" / "order_data.json"


def _int_env(name: str, default: int) -> int:
    raw = os.environ.get(name, "")
    try:
        return int(raw) if raw else default
    except ValueError:
        return default


def get_debounce_seconds() -> float:
    return _int_env(DEBOUNCE_ENV, 1000) / 1000


def get_echo_window_ms() -> int:
    return _int_env(ECHO_WINDOW_ENV, ECHO_WINDOW_MS)


def get_poll_interval() -> float:
    raw = os.environ.get(POLL_INTERVAL_ENV, "")
    try:
        return float(raw) if raw else DEFAULT_POLL_INTERVAL
    except ValueError:
        return DEFAULT_POLL_INTERVAL


def require_rest_credentials(message: str = "") -> tuple[str, str]:
    """Return the REST store URL and key or exit with an error."""
    url = os.environ.get(SUPABASE_URL_ENV, "")
    key = os.environ.get(SUPABASE_KEY_ENV, "")
    if not url or not key:
        import sys

        msg = message or f"{SUPABASE_URL_ENV} and {SUPABASE_KEY_ENV} must be set for the rest store."
        print(f"Error: {msg}", file=sys.stderr)
        sys.exit(1)
    return url, key


def create_record_store() -> RecordStore:
    """Build the record store selected by ``SCOREBOOK_STORE`` (file or rest)."""
    kind = os.environ.get(STORE_ENV, "file").strip().lower()
    if kind == "rest":
        url, key = require_rest_credentials()
        return RestRecordStore(url, key, table=os.environ.get(TABLE_ENV, DEFAULT_TABLE))
    return FileRecordStore(os.environ.get(DATA_PATH_ENV) or DEFAULT_DATA_PATH)
