"""Quiet-window coalescing of raw filesystem events.

Editors write a document in several steps (truncate, incremental flushes,
temp-file-then-rename). Every path gets one ``PendingEntry`` in a shared table
and a single coordinator thread waits for the earliest deadline, so an event
storm never creates more than one timer.
"""

from __future__ import annotations

import logging
import threading
import time
from pathlib import Path
from typing import Callable

from .models import EventKind, PendingEntry, RawEvent

logger = logging.getLogger(__name__)

SettledCallback = Callable[[Path], None]


class Debouncer:
    def __init__(self, quiet_window_s: float, *, clock: Callable[[], float] = time.monotonic) -> None:
        if quiet_window_s < 0:
            raise ValueError("quiet window must not be negative")
        self._quiet_window = quiet_window_s
        self._clock = clock
        self._entries: dict[Path, PendingEntry] = {}
        self._callbacks: list[SettledCallback] = []
        self._condition = threading.Condition()
        self._thread: threading.Thread | None = None
        self._stopping = False

    @property
    def quiet_window(self) -> float:
        return self._quiet_window

    def on_settled(self, callback: SettledCallback) -> None:
        self._callbacks.append(callback)

    def observe(self, event: RawEvent) -> None:
        with self._condition:
            if event.kind is EventKind.REMOVED:
                if self._entries.pop(event.path, None) is not None:
                    logger.debug("Dropped pending %s: removed before settling", event.path)
                return
            entry = self._entries.get(event.path)
            if entry is None:
                self._entries[event.path] = PendingEntry(path=event.path, last_seen=event.timestamp)
            else:
                entry.last_seen = max(entry.last_seen, event.timestamp)
            self._condition.notify()

    def is_pending(self, path: Path) -> bool:
        with self._condition:
            return path in self._entries

    def pending_paths(self) -> list[Path]:
        with self._condition:
            return list(self._entries)

    def flush_due(self, now: float | None = None) -> list[Path]:
        """Emit every path that has been quiet for the whole window."""

        now = self._clock() if now is None else now
        with self._condition:
            due = [
                path
                for path, entry in self._entries.items()
                if now - entry.last_seen >= self._quiet_window
            ]
            for path in due:
                self._entries.pop(path).pending = False
        for path in due:
            self._emit(path)
        return due

    def _emit(self, path: Path) -> None:
        for callback in list(self._callbacks):
            try:
                callback(path)
            except Exception:
                logger.exception("Settled-event handler failed for %s", path)

    def _next_deadline(self) -> float | None:
        if not self._entries:
            return None
        return min(entry.last_seen for entry in self._entries.values()) + self._quiet_window

    def start(self) -> None:
        if self._thread is not None:
            return
        self._stopping = False
        self._thread = threading.Thread(target=self._run, name="debouncer", daemon=True)
        self._thread.start()

    def stop(self, timeout: float | None = 5.0) -> None:
        with self._condition:
            self._stopping = True
            self._condition.notify_all()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    def _run(self) -> None:
        while True:
            with self._condition:
                if self._stopping:
                    return
                deadline = self._next_deadline()
                if deadline is None:
                    self._condition.wait()
                    continue
                remaining = deadline - self._clock()
                if remaining > 0:
                    self._condition.wait(remaining)
                    continue
            self.flush_due()


__all__ = ["Debouncer", "SettledCallback"]
