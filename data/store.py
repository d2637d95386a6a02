# /// script
# requires-python = ">=3.12"
# dependencies = ["pydantic>=2.0"]
# ///
"""Persistence adapters for the single order record.

Two interchangeable stores implement the ``load()`` / ``save()``
contract:

* :class:`FileRecordStore` keeps the record as one JSON file, written
  atomically (temp file + rename).
* :class:`RestRecordStore` talks to a PostgREST endpoint (the REST
  layer Supabase exposes) holding a one-row ``order_data`` table whose
  ``data`` column is the JSON record.

:class:`ChangeFeed` is the in-process notification channel: whoever
saves publishes the snapshot, and subscribers (the web event stream,
other sessions) receive it.

Usage::

    from data.store import FileRecordStore, ChangeFeed

    store = FileRecordStore("/tmp/order.json")
    data = store.load()          # raises RecordNotFoundError when absent
    store.save(data)
"""

from __future__ import annotations

import json
import logging
import threading
import time
import urllib.error
import urllib.parse
import urllib.request
from collections.abc import Callable
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Protocol

from pydantic import ValidationError

from models import OrderData


logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

DEFAULT_TABLE = "order_data"
DEFAULT_TIMEOUT = 10  # seconds
MAX_RETRIES = 3
RETRY_BACKOFF_BASE = 0.5  # seconds; actual delay = base * 2^attempt


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------

class StoreError(Exception):
    """Base exception for record store failures."""

    def __init__(self, message: str, status_code: int | None = None,
                 url: str | None = None):
        self.status_code = status_code
        self.url = url
        super().__init__(message)


class RecordNotFoundError(StoreError):
    """Raised when the store holds no record yet."""


class StoreConnectionError(StoreError):
    """Raised when the backing store cannot be reached."""


class StoreTimeoutError(StoreError):
    """Raised when a request to the backing store times out."""


class RecordStore(Protocol):
    def load(self) -> OrderData: ...

    def save(self, data: OrderData) -> None: ...


# ---------------------------------------------------------------------------
# File store
# ---------------------------------------------------------------------------

class FileRecordStore:
    """JSON-file record store.

    Args:
        path: File holding the record.  Parent directories are created on
            first save.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> OrderData:
        if not self._path.exists():
            raise RecordNotFoundError(f"No order record at {self._path}")
        try:
            with open(self._path, encoding="utf-8") as f:
                record = json.load(f)
        except (json.JSONDecodeError, OSError) as exc:
            raise StoreError(f"Could not read {self._path}: {exc}") from exc
        return _parse_record(record, str(self._path))

    def save(self, data: OrderData) -> None:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = self._path.with_suffix(".tmp")
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(data.to_record(), f, ensure_ascii=False, separators=(",", ":"))
            tmp_path.replace(self._path)  # atomic rename
        except OSError as exc:
            raise StoreError(f"Could not write {self._path}: {exc}") from exc


# ---------------------------------------------------------------------------
# REST store
# ---------------------------------------------------------------------------

class RestRecordStore:
    """Single-row table behind a PostgREST API.

    The row id is opaque and fetched once by :meth:`load`; :meth:`save`
    updates that row in place.  There is no version check on the server
    side, the last writer wins.

    Args:
        base_url: Project URL, e.g. ``https://xyz.supabase.co``.
        api_key: Anon key sent as ``apikey`` and bearer token.
        table: Table name.
        timeout: Per-request timeout in seconds.
        max_retries: Attempts for transient failures (5xx, network).
    """

    def __init__(self, base_url: str, api_key: str, table: str = DEFAULT_TABLE,
                 timeout: int = DEFAULT_TIMEOUT, max_retries: int = MAX_RETRIES) -> None:
        self._endpoint = f"{base_url.rstrip('/')}/rest/v1/{table}"
        self._api_key = api_key
        self._timeout = timeout
        self._max_retries = max_retries
        self._record_id: Any = None

    @property
    def record_id(self) -> Any:
        return self._record_id

    def load(self) -> OrderData:
        url = f"{self._endpoint}?{urllib.parse.urlencode({'select': '*', 'limit': 1})}"
        rows = self._request("GET", url)
        if not rows:
            raise RecordNotFoundError("order_data table is empty", url=url)
        row = rows[0]
        self._record_id = row.get("id")
        return _parse_record(row.get("data"), url)

    def save(self, data: OrderData) -> None:
        if self._record_id is None:
            raise RecordNotFoundError("save() called before a record was loaded")
        query = urllib.parse.urlencode({"id": f"eq.{self._record_id}"})
        self._request("PATCH", f"{self._endpoint}?{query}", {
            "data": data.to_record(),
            "updated_at": datetime.now(timezone.utc).isoformat(),
        })

    # -- helpers -----------------------------------------------------------

    def _headers(self) -> dict[str, str]:
        return {
            "apikey": self._api_key,
            "Authorization": f"Bearer {self._api_key}",
            "Accept": "application/json",
            "Content-Type": "application/json",
            "Prefer": "return=minimal",
        }

    def _request(self, method: str, url: str, body: dict | None = None) -> Any:
        """Send a request, retrying transient failures with backoff.

        Raises:
            RecordNotFoundError: On 404.
            StoreTimeoutError: If every attempt timed out.
            StoreConnectionError: If the server stayed unreachable or kept
                returning 5xx.
            StoreError: For other HTTP errors.
        """
        payload = json.dumps(body).encode("utf-8") if body is not None else None
        last_error: StoreError | None = None

        for attempt in range(self._max_retries):
            try:
                req = urllib.request.Request(url, data=payload, method=method,
                                             headers=self._headers())
                with urllib.request.urlopen(req, timeout=self._timeout) as resp:
                    raw = resp.read()
                    return json.loads(raw) if raw else None

            except urllib.error.HTTPError as exc:
                if exc.code == 404:
                    raise RecordNotFoundError(
                        f"Resource not found: {url}", status_code=404, url=url,
                    ) from exc
                if exc.code < 500:
                    raise StoreError(
                        f"HTTP {exc.code} from {url}", status_code=exc.code, url=url,
                    ) from exc
                last_error = StoreConnectionError(
                    f"HTTP {exc.code} from {url}", status_code=exc.code, url=url,
                )

            except (TimeoutError, urllib.error.URLError) as exc:
                timed_out = isinstance(exc, TimeoutError) or isinstance(
                    getattr(exc, "reason", None), TimeoutError
                )
                if timed_out:
                    last_error = StoreTimeoutError(f"Request timed out: {url}", url=url)
                else:
                    last_error = StoreConnectionError(f"Connection failed: {exc}", url=url)

            except OSError as exc:
                last_error = StoreConnectionError(f"Connection error: {exc}", url=url)

            logger.warning("%s %s failed (attempt %d/%d): %s",
                           method, url, attempt + 1, self._max_retries, last_error)
            if attempt < self._max_retries - 1:
                _backoff_sleep(attempt)

        # All retries exhausted
        if last_error is not None:
            raise last_error
        raise StoreConnectionError(f"No attempts made for {url}", url=url)


def _parse_record(record: Any, source: str) -> OrderData:
    """Validate a raw stored record, reporting schema errors as StoreError."""
    try:
        return OrderData.from_record(record)
    except ValidationError as exc:
        raise StoreError(
            f"Invalid order record in {source} ({exc.error_count()} errors): {exc}"
        ) from exc


def _backoff_sleep(attempt: int) -> None:
    """Sleep with exponential backoff."""
    time.sleep(RETRY_BACKOFF_BASE * (2 ** attempt))


# ---------------------------------------------------------------------------
# Change notification
# ---------------------------------------------------------------------------

ChangeHandler = Callable[[OrderData], None]


class ChangeFeed:
    """Fan-out of saved snapshots to subscribed handlers."""

    def __init__(self) -> None:
        self._handlers: list[ChangeHandler] = []
        self._lock = threading.Lock()

    def subscribe(self, handler: ChangeHandler) -> Callable[[], None]:
        """Register *handler*; returns a function that unsubscribes it."""
        with self._lock:
            self._handlers.append(handler)

        def unsubscribe() -> None:
            with self._lock:
                if handler in self._handlers:
                    self._handlers.remove(handler)

        return unsubscribe

    def publish(self, snapshot: OrderData) -> None:
        """Deliver *snapshot* to every handler, including the writer's own.

        A failing handler is logged and does not stop delivery to the rest.
        """
        with self._lock:
            handlers = list(self._handlers)
        for handler in handlers:
            try:
                handler(snapshot)
            except Exception:
                logger.exception("Change handler %r failed", handler)

    def __len__(self) -> int:
        with self._lock:
            return len(self._handlers)
