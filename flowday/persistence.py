"""Debounced saving and start-up loading of the app record.

Timers are requested from a scheduler object with two methods::

    schedule(delay_ms, callback) -> handle
    cancel(handle)

The GTK window passes a GLib-backed scheduler; tests pass a manual one.
Every arm bumps a generation counter and a firing callback only acts if its
generation is still current, so a superseded timer can never write.
"""

import logging
import sqlite3
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Optional

from flowday.database import APP_DATA_KEY, LEGACY_NODES_KEY, Database
from flowday.defaults import default_app_data
from flowday.models import AppData

logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_MS = 1000


class SaveStatus(str, Enum):
    SAVED = "saved"
    SAVING = "saving"
    UNSAVED = "unsaved"


class PersistenceAdapter:
    """Writes the merged app record to the key-value store."""

    def __init__(self, db: Database, scheduler: Any,
                 debounce_ms: int = DEFAULT_DEBOUNCE_MS,
                 clock: Optional[Callable[[], datetime]] = None):
        self.db = db
        self.scheduler = scheduler
        self.debounce_ms = debounce_ms
        self._clock = clock or datetime.now

        self.status = SaveStatus.SAVED
        self.last_saved_time = ""

        self._generation = 0
        self._timer: Any = None
        self._writing = False
        self._alert_shown = False

        # Returns the current merged record; set by the controller.
        self.snapshot: Optional[Callable[[], AppData]] = None

        # Callbacks
        self.on_status_changed: Optional[Callable[[SaveStatus], None]] = None
        self.on_save_failed: Optional[Callable[[str], None]] = None

    def _set_status(self, status: SaveStatus):
        if status != self.status:
            self.status = status
            if self.on_status_changed:
                self.on_status_changed(status)

    def _stamp(self) -> str:
        return self._clock().strftime("%H:%M")

    def _report_failure(self, message: str):
        # One alert at a time; further failures only log until it is dismissed.
        if self._alert_shown:
            return
        self._alert_shown = True
        if self.on_save_failed:
            self.on_save_failed(message)

    def failure_acknowledged(self):
        """The user dismissed the save-failure alert."""
        self._alert_shown = False

    # ==================== Loading ====================

    def load(self) -> AppData:
        """Read the persisted record, falling back to the built-in layouts."""
        try:
            raw = self.db.get_item(APP_DATA_KEY)
        except sqlite3.Error:
            logger.exception("Failed to read app data")
            return default_app_data()

        if raw is None:
            return default_app_data()

        try:
            data = AppData.from_json(raw)
        except ValueError as exc:
            logger.warning("Discarding malformed app data: %s", exc)
            return default_app_data()

        self.last_saved_time = self._stamp()
        return data

    # ==================== Saving ====================

    def write(self, data: AppData) -> bool:
        """Write the record now. Returns False if storage failed."""
        self._writing = True
        try:
            self.db.set_item(APP_DATA_KEY, data.to_json())
            self.db.remove_item(LEGACY_NODES_KEY)
        except sqlite3.Error as exc:
            logger.error("Save failed: %s", exc, exc_info=True)
            self._report_failure(f"Save failed, local storage may be full: {exc}")
            return False
        finally:
            self._writing = False

        self.last_saved_time = self._stamp()
        self._set_status(SaveStatus.SAVED)
        logger.debug("Saved %d layout(s)", len(data.layouts))
        return True

    def _current(self) -> AppData:
        if self.snapshot is None:
            raise RuntimeError("PersistenceAdapter.snapshot is not set")
        return self.snapshot()

    def _cancel_timer(self):
        self._generation += 1
        if self._timer is not None:
            self.scheduler.cancel(self._timer)
            self._timer = None

    def mark_changed(self):
        """The working sequence changed: mark unsaved and restart the debounce."""
        if not self._writing:
            self._set_status(SaveStatus.UNSAVED)
        self._cancel_timer()
        generation = self._generation
        self._timer = self.scheduler.schedule(
            self.debounce_ms, lambda: self._on_debounce(generation)
        )

    def _on_debounce(self, generation: int):
        if generation != self._generation:
            return
        self._timer = None
        if self.status != SaveStatus.UNSAVED:
            return
        self._set_status(SaveStatus.SAVING)
        self.write(self._current())

    def save_now(self) -> bool:
        """Manual save: skip the debounce and write immediately."""
        self._cancel_timer()
        self._set_status(SaveStatus.SAVING)
        return self.write(self._current())

    def emergency_save(self) -> bool:
        """Write immediately without passing through SAVING (app may suspend)."""
        self._cancel_timer()
        return self.write(self._current())

    def clear(self):
        """Forget all persisted state."""
        self._cancel_timer()
        try:
            self.db.remove_item(APP_DATA_KEY)
            self.db.remove_item(LEGACY_NODES_KEY)
        except sqlite3.Error as exc:
            logger.error("Failed to clear stored data: %s", exc, exc_info=True)
            self._report_failure(f"Could not clear local storage: {exc}")
        self.last_saved_time = ""
        self._set_status(SaveStatus.SAVED)
