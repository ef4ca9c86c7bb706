"""Live watch loop: watchdog subscription -> Debouncer -> ConversionService."""

from __future__ import annotations

import logging
import os
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Callable

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from .core import ConversionService
from .debounce import Debouncer
from .errors import WatchError
from .formats import ExportFormat
from .matching import PathMatcher
from .models import EventKind, RawEvent, WatchTarget
from .utils import normalise_path

logger = logging.getLogger(__name__)


def _event_path(raw: str | bytes) -> Path:
    return normalise_path(Path(os.fsdecode(raw)))


class SourceEventHandler(FileSystemEventHandler):
    """Translates watchdog callbacks into ``RawEvent`` objects for one target."""

    def __init__(
        self,
        target: WatchTarget,
        matcher: PathMatcher,
        sink: Callable[[RawEvent], None],
        *,
        on_tree_removed: Callable[[Path], None] | None = None,
        on_fatal: Callable[[WatchError], None] | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        super().__init__()
        self.matcher = matcher
        self.sink = sink
        self.on_tree_removed = on_tree_removed
        self.on_fatal = on_fatal
        self.clock = clock
        root = normalise_path(target.path)
        self.single_file = None if target.is_directory else root
        self.watch_dir = root if target.is_directory else root.parent

    def accepts(self, path: Path) -> bool:
        if self.single_file is not None:
            return path == self.single_file
        return self.matcher.is_source(path)

    def on_created(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            return
        self._emit(_event_path(event.src_path), EventKind.CREATED)

    def on_modified(self, event: FileSystemEvent) -> None:
        # Directory modifications only mirror changes to their entries.
        if event.is_directory:
            return
        self._emit(_event_path(event.src_path), EventKind.MODIFIED)

    def on_closed(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            return
        self._emit(_event_path(event.src_path), EventKind.MODIFIED)

    def on_deleted(self, event: FileSystemEvent) -> None:
        path = _event_path(event.src_path)
        if path == self.watch_dir:
            self._fatal(f"Watch root was removed: {path}")
            return
        if event.is_directory:
            self._tree_removed(path)
            return
        self._emit(path, EventKind.REMOVED)

    def on_moved(self, event: FileSystemEvent) -> None:
        src = _event_path(event.src_path)
        dest_raw = getattr(event, "dest_path", None)
        if src == self.watch_dir:
            self._fatal(f"Watch root was moved away: {src}")
            return
        if event.is_directory:
            self._tree_removed(src)
            return
        self._emit(src, EventKind.REMOVED)
        if dest_raw:
            self._emit(_event_path(dest_raw), EventKind.RENAMED)

    def _emit(self, path: Path, kind: EventKind) -> None:
        if not self.accepts(path):
            return
        logger.debug("%s %s", kind.value, path)
        self.sink(RawEvent(path=path, kind=kind, timestamp=self.clock()))

    def _tree_removed(self, path: Path) -> None:
        if self.on_tree_removed is not None:
            self.on_tree_removed(path)

    def _fatal(self, message: str) -> None:
        logger.error(message)
        if self.on_fatal is not None:
            self.on_fatal(WatchError(message))


class Watcher:
    """Owns the filesystem subscription and dispatches settled paths to workers.

    A path is converted by at most one worker at a time. Settlements that
    arrive while that worker runs collapse into a single queued re-run.
    """

    def __init__(
        self,
        service: ConversionService,
        *,
        export_format: ExportFormat,
        quiet_window_s: float,
        worker_pool_size: int = 2,
        poll_interval: float = 1.0,
        debouncer: Debouncer | None = None,
    ) -> None:
        self._service = service
        self._format = export_format
        self._debouncer = debouncer or Debouncer(quiet_window_s)
        self._debouncer.on_settled(self._on_settled)
        self._pool_size = max(1, worker_pool_size)
        self._poll_interval = poll_interval
        self._executor: ThreadPoolExecutor | None = None
        self._observer: Observer | None = None
        self._handler: SourceEventHandler | None = None
        self._lock = threading.Lock()
        self._running: set[Path] = set()
        self._rerun: set[Path] = set()
        self._failure: WatchError | None = None
        self._failed = threading.Event()

    @property
    def debouncer(self) -> Debouncer:
        return self._debouncer

    @property
    def handler(self) -> SourceEventHandler | None:
        return self._handler

    def start(self, target: WatchTarget) -> None:
        handler = SourceEventHandler(
            target,
            self._service.matcher,
            self._debouncer.observe,
            on_tree_removed=self._forget_tree,
            on_fatal=self._fail,
        )
        self._executor = ThreadPoolExecutor(max_workers=self._pool_size, thread_name_prefix="export-worker")
        observer = Observer()
        try:
            observer.schedule(handler, str(handler.watch_dir), recursive=target.is_directory)
            observer.start()
        except OSError as exc:
            self._executor.shutdown(wait=False)
            self._executor = None
            raise WatchError(f"Cannot watch {handler.watch_dir}: {exc}") from exc
        self._handler = handler
        self._observer = observer
        self._debouncer.start()
        if target.is_directory:
            logger.info("Watching directory recursively: %s", handler.watch_dir)
        else:
            logger.info("Watching single file: %s", target.path)

    def run(self, target: WatchTarget, stop_event: threading.Event) -> None:
        """Block until *stop_event* is set; raise WatchError if the root is lost."""

        self.start(target)
        try:
            while not stop_event.wait(self._poll_interval):
                self._check_health()
                if self._failed.is_set():
                    break
        finally:
            self.stop()
        if self._failure is not None:
            raise self._failure

    def stop(self) -> None:
        if self._observer is not None:
            self._observer.stop()
            self._observer.join()
            self._observer = None
        self._debouncer.stop()
        if self._executor is not None:
            self._executor.shutdown(wait=False, cancel_futures=True)
            self._executor = None
        logger.info("Watcher stopped.")

    def _check_health(self) -> None:
        if self._handler is None or self._failed.is_set():
            return
        if not self._handler.watch_dir.is_dir():
            self._fail(WatchError(f"Watch root is no longer accessible: {self._handler.watch_dir}"))
        elif self._observer is not None and not self._observer.is_alive():
            self._fail(WatchError("Filesystem observer stopped unexpectedly"))

    def _fail(self, error: WatchError) -> None:
        if self._failure is None:
            self._failure = error
        self._failed.set()

    def _forget_tree(self, root: Path) -> None:
        for path in self._debouncer.pending_paths():
            if path == root or root in path.parents:
                self._debouncer.observe(RawEvent(path=path, kind=EventKind.REMOVED, timestamp=time.monotonic()))

    def _on_settled(self, path: Path) -> None:
        with self._lock:
            if path in self._running:
                self._rerun.add(path)
                logger.debug("Export of %s still running; queued one re-run", path)
                return
            self._running.add(path)
        self._submit(path)

    def _submit(self, path: Path) -> None:
        executor = self._executor
        if executor is None:
            self._release(path)
            return
        try:
            executor.submit(self._convert, path)
        except RuntimeError:
            # Executor already shut down.
            self._release(path)

    def _release(self, path: Path) -> None:
        with self._lock:
            self._running.discard(path)
            self._rerun.discard(path)

    def _convert(self, path: Path) -> None:
        try:
            if path.is_file():
                self._service.convert_file(path, self._format)
            else:
                logger.info("Skipping %s: file no longer exists", path)
        except Exception:
            logger.exception("Unexpected failure while exporting %s", path)
        finally:
            with self._lock:
                again = path in self._rerun
                self._rerun.discard(path)
                if not again:
                    self._running.discard(path)
            if again:
                self._submit(path)


__all__ = ["SourceEventHandler", "Watcher"]
