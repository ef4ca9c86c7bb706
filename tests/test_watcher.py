from __future__ import annotations

import shutil
import threading
import time
from pathlib import Path

import pytest
from watchdog.events import (
    DirDeletedEvent,
    DirModifiedEvent,
    DirMovedEvent,
    FileCreatedEvent,
    FileDeletedEvent,
    FileModifiedEvent,
    FileMovedEvent,
)

from psd_autoexport.core import ConversionService
from psd_autoexport.debounce import Debouncer
from psd_autoexport.errors import WatchError
from psd_autoexport.formats import ExportFormat
from psd_autoexport.matching import PathMatcher
from psd_autoexport.models import EventKind, RawEvent, TargetKind, WatchTarget
from psd_autoexport.watcher import SourceEventHandler, Watcher

from conftest import build_config, fake_decoder, write_source


def wait_until(predicate, timeout: float = 10.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.05)
    return predicate()


def make_handler(target: WatchTarget, fatal: list[WatchError] | None = None):
    events: list[RawEvent] = []
    handler = SourceEventHandler(
        target,
        PathMatcher(),
        events.append,
        on_fatal=(fatal.append if fatal is not None else None),
        clock=lambda: 1.0,
    )
    return handler, events


def test_handler_routes_only_source_files(tmp_path: Path) -> None:
    handler, events = make_handler(WatchTarget(tmp_path, TargetKind.DIRECTORY))

    handler.on_created(FileCreatedEvent(str(tmp_path / "cover.psd")))
    handler.on_modified(FileModifiedEvent(str(tmp_path / "cover.png")))
    handler.on_modified(FileModifiedEvent(str(tmp_path / "notes.txt")))
    handler.on_modified(DirModifiedEvent(str(tmp_path)))
    handler.on_modified(FileModifiedEvent(str(tmp_path / "sub" / "deep.PSD")))

    assert [(event.path.name, event.kind) for event in events] == [
        ("cover.psd", EventKind.CREATED),
        ("deep.PSD", EventKind.MODIFIED),
    ]
    assert events[0].timestamp == 1.0


def test_handler_splits_moves_into_remove_and_rename(tmp_path: Path) -> None:
    handler, events = make_handler(WatchTarget(tmp_path, TargetKind.DIRECTORY))

    handler.on_moved(FileMovedEvent(str(tmp_path / "cover.psd~"), str(tmp_path / "cover.psd")))
    handler.on_moved(FileMovedEvent(str(tmp_path / "old.psd"), str(tmp_path / "new.psd")))
    handler.on_deleted(FileDeletedEvent(str(tmp_path / "new.psd")))

    assert [(event.path.name, event.kind) for event in events] == [
        ("cover.psd", EventKind.RENAMED),
        ("old.psd", EventKind.REMOVED),
        ("new.psd", EventKind.RENAMED),
        ("new.psd", EventKind.REMOVED),
    ]


def test_single_file_target_filters_siblings(tmp_path: Path) -> None:
    source = write_source(tmp_path / "cover.psd")
    handler, events = make_handler(WatchTarget(source, TargetKind.FILE))

    assert handler.watch_dir == tmp_path
    handler.on_modified(FileModifiedEvent(str(tmp_path / "other.psd")))
    handler.on_moved(FileMovedEvent(str(tmp_path / "cover.tmp"), str(source)))
    handler.on_deleted(FileDeletedEvent(str(source)))

    assert [event.kind for event in events] == [EventKind.RENAMED, EventKind.REMOVED]


def test_deleting_watch_root_is_fatal(tmp_path: Path) -> None:
    fatal: list[WatchError] = []
    handler, events = make_handler(WatchTarget(tmp_path, TargetKind.DIRECTORY), fatal)

    handler.on_deleted(DirDeletedEvent(str(tmp_path)))

    assert len(fatal) == 1
    assert events == []


class BlockingService:
    """Stands in for ConversionService and records overlapping conversions."""

    def __init__(self) -> None:
        self.matcher = PathMatcher()
        self.calls: list[Path] = []
        self.started = threading.Event()
        self.release = threading.Event()
        self._lock = threading.Lock()
        self._active = 0
        self.max_active = 0

    def convert_file(self, path: Path, export_format: ExportFormat | None = None) -> None:
        with self._lock:
            self.calls.append(path)
            self._active += 1
            self.max_active = max(self.max_active, self._active)
        self.started.set()
        self.release.wait(5.0)
        with self._lock:
            self._active -= 1


def test_settlements_during_a_running_export_collapse_into_one_rerun(tmp_path: Path) -> None:
    source = write_source(tmp_path / "cover.psd")
    service = BlockingService()
    debouncer = Debouncer(1000.0, clock=lambda: 0.0)
    watcher = Watcher(
        service,  # type: ignore[arg-type]
        export_format=ExportFormat.PNG,
        quiet_window_s=1000.0,
        worker_pool_size=4,
        debouncer=debouncer,
    )
    watcher.start(WatchTarget(tmp_path, TargetKind.DIRECTORY))
    try:
        debouncer.observe(RawEvent(source, EventKind.MODIFIED, 0.0))
        debouncer.flush_due(2000.0)
        assert service.started.wait(5.0)

        for round_ in range(3):
            debouncer.observe(RawEvent(source, EventKind.MODIFIED, 3000.0 + round_))
            debouncer.flush_due(9000.0 + round_)

        assert len(service.calls) == 1
        service.release.set()
        assert wait_until(lambda: len(service.calls) == 2)
        time.sleep(0.2)
    finally:
        service.release.set()
        watcher.stop()

    assert service.calls == [source, source]
    assert service.max_active == 1


def test_removed_subtree_drops_only_its_pending_paths(tmp_path: Path) -> None:
    config = build_config()
    service = ConversionService(config, decoder=fake_decoder)
    debouncer = Debouncer(1000.0, clock=lambda: 0.0)
    watcher = Watcher(service, export_format=ExportFormat.PNG, quiet_window_s=1000.0, debouncer=debouncer)
    inner = tmp_path / "sub" / "x.psd"
    outer = tmp_path / "y.psd"
    watcher.start(WatchTarget(tmp_path, TargetKind.DIRECTORY))
    try:
        debouncer.observe(RawEvent(inner, EventKind.MODIFIED, 0.0))
        debouncer.observe(RawEvent(outer, EventKind.MODIFIED, 0.0))
        watcher.handler.on_deleted(DirDeletedEvent(str(tmp_path / "sub")))

        assert not debouncer.is_pending(inner)
        assert debouncer.is_pending(outer)

        debouncer.observe(RawEvent(inner, EventKind.MODIFIED, 1.0))
        watcher.handler.on_moved(DirMovedEvent(str(tmp_path / "sub"), str(tmp_path / "renamed")))

        assert not debouncer.is_pending(inner)
        assert debouncer.is_pending(outer)
    finally:
        watcher.stop()


class CountingService(ConversionService):
    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.calls: list[Path] = []

    def convert_file(self, source_path: Path, export_format: ExportFormat | None = None):
        self.calls.append(source_path)
        return super().convert_file(source_path, export_format)


def _run_in_thread(watcher: Watcher, target: WatchTarget, stop_event: threading.Event):
    errors: list[BaseException] = []

    def _target() -> None:
        try:
            watcher.run(target, stop_event)
        except BaseException as exc:  # noqa: BLE001
            errors.append(exc)

    thread = threading.Thread(target=_target, daemon=True)
    thread.start()
    return thread, errors


def test_live_watch_exports_new_documents_once(tmp_path: Path) -> None:
    service = CountingService(build_config(), decoder=fake_decoder)
    watcher = Watcher(service, export_format=ExportFormat.PNG, quiet_window_s=0.3, poll_interval=0.1)
    stop_event = threading.Event()
    thread, errors = _run_in_thread(watcher, WatchTarget(tmp_path, TargetKind.DIRECTORY), stop_event)
    try:
        assert wait_until(lambda: watcher.handler is not None)
        subdir = tmp_path / "new" / "nested"
        subdir.mkdir(parents=True)
        time.sleep(0.3)
        source = subdir / "cover.psd"
        for shade in (10, 20, 30):
            write_source(source, (shade, shade, shade))
            time.sleep(0.05)
        (tmp_path / "notes.txt").write_text("not a document", encoding="utf-8")

        output = subdir / "cover.png"
        assert wait_until(output.exists)
        time.sleep(0.8)
    finally:
        stop_event.set()
        thread.join(10.0)

    assert errors == []
    assert service.calls.count(source) == 1
    assert not (tmp_path / "notes.png").exists()


def test_run_raises_when_watch_root_disappears(tmp_path: Path) -> None:
    root = tmp_path / "root"
    root.mkdir()
    service = CountingService(build_config(), decoder=fake_decoder)
    watcher = Watcher(service, export_format=ExportFormat.PNG, quiet_window_s=0.1, poll_interval=0.1)
    stop_event = threading.Event()
    thread, errors = _run_in_thread(watcher, WatchTarget(root, TargetKind.DIRECTORY), stop_event)
    try:
        assert wait_until(lambda: watcher.handler is not None)
        shutil.rmtree(root)
        thread.join(10.0)
    finally:
        stop_event.set()
        thread.join(10.0)

    assert len(errors) == 1
    assert isinstance(errors[0], WatchError)


def test_start_fails_for_missing_directory(tmp_path: Path) -> None:
    service = CountingService(build_config(), decoder=fake_decoder)
    watcher = Watcher(service, export_format=ExportFormat.PNG, quiet_window_s=0.1)
    with pytest.raises(WatchError):
        watcher.start(WatchTarget(tmp_path / "missing", TargetKind.DIRECTORY))
