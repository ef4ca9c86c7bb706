from __future__ import annotations

import logging
import signal
import threading
from pathlib import Path

from .batch import BatchRunner
from .config import AppConfig, dump_config
from .core import ConversionService
from .errors import InvalidTarget
from .formats import ExportFormat
from .matching import PathMatcher
from .models import BatchConversionResult, TargetKind, WatchTarget
from .utils import normalise_path
from .watcher import Watcher

logger = logging.getLogger(__name__)


def resolve_target(path: Path, matcher: PathMatcher, *, require_source: bool = False) -> WatchTarget:
    """Pick the target kind from the filesystem type of *path*.

    A file that is not a layered source document is only rejected when
    *require_source* is set; a one-shot batch over it is simply empty.
    """

    absolute = normalise_path(path)
    if not absolute.exists():
        raise InvalidTarget(path, "Path does not exist")
    if absolute.is_dir():
        return WatchTarget(path=absolute, kind=TargetKind.DIRECTORY)
    if absolute.is_file():
        if require_source and not matcher.is_source(absolute):
            raise InvalidTarget(path, "Path is a file but not a layered source document")
        return WatchTarget(path=absolute, kind=TargetKind.FILE)
    raise InvalidTarget(path, "Path is neither a file nor a directory")


class Dispatcher:
    """Chooses between a one-shot batch and the live watch loop."""

    def __init__(self, config: AppConfig, service: ConversionService | None = None) -> None:
        self._config = config
        self._service = service or ConversionService(config)

    @property
    def service(self) -> ConversionService:
        return self._service

    def resolve(self, path: Path, *, require_source: bool = False) -> WatchTarget:
        return resolve_target(path, self._service.matcher, require_source=require_source)

    def run(
        self,
        path: Path,
        export_format: ExportFormat | None = None,
        *,
        once: bool = False,
        stop_event: threading.Event | None = None,
    ) -> BatchConversionResult | None:
        if once:
            return self.run_once(path, export_format)
        self.watch(path, export_format, stop_event)
        return None

    def run_once(self, path: Path, export_format: ExportFormat | None = None) -> BatchConversionResult:
        target = self.resolve(path)
        logger.info("Running once, exporting existing files...")
        return BatchRunner(self._config, self._service).run_batch(target, export_format)

    def watch(
        self,
        path: Path,
        export_format: ExportFormat | None = None,
        stop_event: threading.Event | None = None,
    ) -> None:
        target = self.resolve(path, require_source=True)
        export_format = export_format or self._config.runtime.output_format
        logger.debug("Effective configuration: %s", dump_config(self._config))
        watcher = Watcher(
            self._service,
            export_format=export_format,
            quiet_window_s=self._config.runtime.quiet_window_s,
            worker_pool_size=self._config.runtime.worker_pool_size,
        )
        if stop_event is None:
            stop_event = threading.Event()
            _install_signal_handlers(stop_event)
        logger.info(
            "Export format: %s, quiet window: %d ms",
            export_format.value,
            self._config.runtime.quiet_window_ms,
        )
        watcher.run(target, stop_event)


def _install_signal_handlers(stop_event: threading.Event) -> None:
    if threading.current_thread() is not threading.main_thread():
        return

    def _signal_handler(signum, frame):  # noqa: ANN001
        logger.info("Received signal %s, shutting down.", signum)
        stop_event.set()

    signal.signal(signal.SIGINT, _signal_handler)
    signal.signal(signal.SIGTERM, _signal_handler)


__all__ = ["Dispatcher", "resolve_target"]
