# /// script
# requires-python = ">=3.12"
# dependencies = ["pydantic>=2.0"]
# ///
"""Multi-client convergence helpers.

* :class:`SyncGuard` decides whether an incoming change notification is
  a genuine remote edit or the echo of this client's own save.
* :class:`Debouncer` collapses a burst of edits into one save after a
  quiet period.
* :class:`StoreWatcher` polls the backing store and forwards snapshots
  that differ from the last one seen.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass

from data.store import RecordStore, StoreError
from models import OrderData


logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

ECHO_WINDOW_MS = 2000
DEBOUNCE_SECONDS = 1.0
DEFAULT_POLL_INTERVAL = 5.0  # seconds
BACKOFF_POLL_INTERVAL = 30.0  # seconds, used while the store keeps failing
BACKOFF_AFTER_ERRORS = 3


# ---------------------------------------------------------------------------
# Echo suppression
# ---------------------------------------------------------------------------

class SyncGuard:
    """Echo suppression for change notifications.

    A snapshot identical to the one this client last saved is its own
    echo and is always dropped.  Anything else arriving *window_ms* or
    later after the last local save is accepted.  Inside the window a
    versioned snapshot is accepted only when it is newer than the version
    last saved here; unversioned snapshots (``version == 0``) are dropped.

    Versions are not coordinated between clients, so a remote edit saved
    inside the window with a version no newer than ours is still lost.

    Args:
        window_ms: Echo suppression window in milliseconds.
        clock: Monotonic clock returning seconds.
    """

    def __init__(self, window_ms: int = ECHO_WINDOW_MS,
                 clock: Callable[[], float] = time.monotonic) -> None:
        self.window_ms = window_ms
        self._clock = clock
        self._last_save_at: float | None = None
        self._last_saved_version = 0
        self._last_saved_record: dict | None = None

    @property
    def last_saved_version(self) -> int:
        return self._last_saved_version

    def mark_local_save(self, version: int = 0, snapshot: OrderData | None = None) -> None:
        self._last_save_at = self._clock()
        self._last_saved_version = max(self._last_saved_version, version)
        if snapshot is not None:
            self._last_saved_record = snapshot.to_record()

    def within_window(self) -> bool:
        if self._last_save_at is None:
            return False
        return (self._clock() - self._last_save_at) * 1000 < self.window_ms

    def is_own_echo(self, snapshot: OrderData) -> bool:
        return (self._last_saved_record is not None
                and snapshot.to_record() == self._last_saved_record)

    def should_accept(self, snapshot: OrderData) -> bool:
        if self.is_own_echo(snapshot):
            return False
        if not self.within_window():
            return True
        if snapshot.version and self._last_saved_version:
            return snapshot.version > self._last_saved_version
        return False


# ---------------------------------------------------------------------------
# Save debouncing
# ---------------------------------------------------------------------------

class Debouncer:
    """Run *fn* once *delay* seconds after the most recent :meth:`trigger`."""

    def __init__(self, delay: float, fn: Callable[[], None]) -> None:
        self.delay = delay
        self._fn = fn
        self._timer: threading.Timer | None = None
        self._lock = threading.Lock()

    @property
    def pending(self) -> bool:
        with self._lock:
            return self._timer is not None

    def trigger(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._timer = threading.Timer(self.delay, self._fire)
            self._timer.daemon = True
            self._timer.start()

    def cancel(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None

    def flush(self) -> None:
        """Run a pending call immediately."""
        with self._lock:
            timer, self._timer = self._timer, None
        if timer is not None:
            timer.cancel()
            self._fn()

    def _fire(self) -> None:
        with self._lock:
            self._timer = None
        self._fn()


# ---------------------------------------------------------------------------
# Store polling
# ---------------------------------------------------------------------------

@dataclass
class PollResult:
    """Outcome of one store poll.

    Attributes:
        changed: True when the loaded record differs from the last one seen.
        snapshot: The loaded record (None on error).
        error: Error message if the load failed.
    """
    changed: bool = False
    snapshot: OrderData | None = None
    error: str | None = None


class StoreWatcher:
    """Poll a store and hand changed snapshots to *on_change*.

    After :data:`BACKOFF_AFTER_ERRORS` consecutive failures the poll
    interval widens to :data:`BACKOFF_POLL_INTERVAL` until a load succeeds.
    """

    def __init__(self, store: RecordStore, on_change: Callable[[OrderData], None],
                 interval: float = DEFAULT_POLL_INTERVAL) -> None:
        self.store = store
        self.on_change = on_change
        self.interval = interval
        self.consecutive_errors = 0
        self._last_record: dict | None = None
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    def prime(self, snapshot: OrderData) -> None:
        """Treat *snapshot* as already seen."""
        self._last_record = snapshot.to_record()

    def poll_once(self) -> PollResult:
        try:
            snapshot = self.store.load()
        except StoreError as exc:
            self.consecutive_errors += 1
            logger.warning("Store poll failed (%d in a row): %s",
                           self.consecutive_errors, exc)
            return PollResult(error=str(exc))

        self.consecutive_errors = 0
        record = snapshot.to_record()
        if record == self._last_record:
            return PollResult(snapshot=snapshot)
        self._last_record = record
        self.on_change(snapshot)
        return PollResult(changed=True, snapshot=snapshot)

    def current_interval(self) -> float:
        if self.consecutive_errors >= BACKOFF_AFTER_ERRORS:
            return max(self.interval, BACKOFF_POLL_INTERVAL)
        return self.interval

    def start(self) -> None:
        if self._thread is not None:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="store-watcher", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=self.interval + 1)
            self._thread = None

    def _run(self) -> None:
        while not self._stop.wait(self.current_interval()):
            self.poll_once()
