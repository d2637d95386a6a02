# /// script
# requires-python = ">=3.12"
# dependencies = ["pydantic>=2.0"]
# ///
"""The read-mutate-persist loop around the order record.

A :class:`ScorebookSession` holds the current :class:`~models.OrderData`
and is the only place it gets replaced.  Edits are pure reducers from
``roster``, ``ledger`` and ``inning``; the session applies them, then
schedules a debounced save.  Store failures never propagate out of the
session: they are logged and queued as transient notifications, and the
local record stays authoritative until the next save succeeds.

Usage::

    session = ScorebookSession(FileRecordStore(path), feed=ChangeFeed())
    session.load()
    session.dispatch(roster.add_player, "田中", Position.SHORTSTOP)
    session.update_game(ledger.record_result, 0, 0, "左安")
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from collections.abc import Callable
from typing import Any

from data.store import ChangeFeed, RecordNotFoundError, RecordStore, StoreError
from models import GameState, OrderData
from sync import DEBOUNCE_SECONDS, Debouncer, SyncGuard


logger = logging.getLogger(__name__)

MAX_NOTIFICATIONS = 20

MSG_SAVED = "💾 保存しました"
MSG_SAVE_FAILED = "❌ 保存失敗"
MSG_LOAD_FAILED = "❌ 読み込み失敗"


class ScorebookSession:
    """Owns the order record for one client.

    Args:
        store: Backing record store.
        feed: Optional change feed.  The session publishes every successful
            save to it and subscribes to it for remote changes.
        guard: Echo suppression guard (a fresh one by default).
        debounce_seconds: Quiet period before an automatic save.
    """

    def __init__(self, store: RecordStore, feed: ChangeFeed | None = None,
                 guard: SyncGuard | None = None,
                 debounce_seconds: float = DEBOUNCE_SECONDS) -> None:
        self.store = store
        self.feed = feed
        self.guard = guard or SyncGuard()
        self.loaded = False
        self._state = OrderData()
        self._lock = threading.RLock()
        self._save_lock = threading.Lock()
        self._debouncer = Debouncer(debounce_seconds, self._autosave)
        self._notifications: deque[str] = deque(maxlen=MAX_NOTIFICATIONS)
        self._unsubscribe = feed.subscribe(self.handle_remote_change) if feed else None

    @property
    def state(self) -> OrderData:
        with self._lock:
            return self._state

    @property
    def save_pending(self) -> bool:
        return self._debouncer.pending

    # -- loading -------------------------------------------------------------

    def load(self) -> bool:
        """Replace local state with the stored record.

        A missing record starts an empty one.  Returns False when the store
        failed, in which case local state is kept.
        """
        try:
            data = self.store.load()
        except RecordNotFoundError:
            logger.info("No stored order record; starting empty")
            data = OrderData()
        except StoreError as exc:
            logger.error("Failed to load order record: %s", exc)
            self.notify(MSG_LOAD_FAILED)
            return False
        with self._lock:
            self._debouncer.cancel()
            self._state = data
            self.loaded = True
        return True

    # -- edits ---------------------------------------------------------------

    def dispatch(self, reducer: Callable[..., OrderData], *args: Any, **kwargs: Any) -> OrderData:
        """Apply ``reducer(state, *args, **kwargs)`` and schedule a save.

        Exceptions from the reducer propagate and leave state untouched.
        """
        with self._lock:
            before = self._state
            after = reducer(before, *args, **kwargs)
            self._state = after
        if after is not before:
            self._debouncer.trigger()
        return after

    def update_game(self, transition: Callable[..., GameState], *args: Any) -> OrderData:
        """Dispatch a :class:`~models.GameState` transition (ledger, inning)."""
        def reducer(data: OrderData) -> OrderData:
            game_state = transition(data.game_state, *args)
            if game_state is data.game_state:
                return data
            return data.model_copy(update={"game_state": game_state})

        return self.dispatch(reducer)

    # -- saving --------------------------------------------------------------

    def save_now(self, show_message: bool = True) -> bool:
        """Persist the current record immediately.

        The store call runs outside the state lock, so edits made while a
        save is in flight are kept and picked up by the next save.  Returns
        True on success.  A failure is logged and queued as a notification;
        the record is retried on the next save.
        """
        self._debouncer.cancel()
        with self._save_lock:
            with self._lock:
                base = self._state
                version = max(base.version, self.guard.last_saved_version) + 1
                snapshot = base.model_copy(update={"version": version})

            try:
                self.store.save(snapshot)
            except StoreError as exc:
                logger.warning("Failed to save order record: %s", exc)
                self.notify(MSG_SAVE_FAILED)
                return False

            with self._lock:
                self.guard.mark_local_save(version, snapshot)
                if self._state is base:
                    self._state = snapshot
                elif self._state.version < version:
                    self._state = self._state.model_copy(update={"version": version})

        if show_message:
            self.notify(MSG_SAVED)
        if self.feed is not None:
            self.feed.publish(snapshot)
        return True

    def _autosave(self) -> None:
        self.save_now(show_message=False)

    def flush(self) -> None:
        """Run a pending automatic save now."""
        self._debouncer.flush()

    # -- remote changes --------------------------------------------------------

    def handle_remote_change(self, snapshot: OrderData) -> bool:
        """Adopt a snapshot from the change feed unless it is our own echo."""
        with self._lock:
            if not self.guard.should_accept(snapshot):
                logger.debug("Ignoring change notification (version %d)", snapshot.version)
                return False
            self._debouncer.cancel()
            self._state = snapshot
        logger.info("Adopted remote order record (version %d)", snapshot.version)
        return True

    # -- notifications ---------------------------------------------------------

    def notify(self, message: str) -> None:
        self._notifications.append(message)

    def drain_notifications(self) -> list[str]:
        messages = []
        while self._notifications:
            messages.append(self._notifications.popleft())
        return messages

    def close(self) -> None:
        """Flush a pending save and detach from the change feed."""
        self.flush()
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
