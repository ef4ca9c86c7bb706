from __future__ import annotations

import concurrent.futures
import logging
from pathlib import Path
from typing import Sequence

from .config import AppConfig
from .core import ConversionService
from .formats import ExportFormat
from .models import BatchConversionResult, ConversionResult, WatchTarget
from .runlog import BatchSummary
from .utils import iter_files

logger = logging.getLogger(__name__)


class BatchRunner:
    """One-shot export of every source file under a target, without watching."""

    def __init__(self, config: AppConfig, service: ConversionService) -> None:
        self._config = config
        self._service = service

    def find_sources(self, target: WatchTarget) -> list[Path]:
        return list(iter_files(target.path, self._service.matcher.is_source))

    def run_once(self, target: WatchTarget, export_format: ExportFormat | None = None) -> list[ConversionResult]:
        export_format = export_format or self._config.runtime.output_format
        paths = self.find_sources(target)
        logger.info("Found %d source files under %s", len(paths), target.path)
        if not paths:
            return []
        parallelism = max(1, self._config.runtime.batch_parallelism)
        if parallelism == 1:
            return self._run_sequential(paths, export_format)
        return self._run_parallel(paths, export_format, parallelism)

    def run_batch(self, target: WatchTarget, export_format: ExportFormat | None = None) -> BatchConversionResult:
        results = self.run_once(target, export_format)
        summary = BatchSummary()
        for result in results:
            summary.record(result.succeeded, result.error_code)
        logger.info(summary.describe())
        return BatchConversionResult(results=results, summary=summary)

    def _run_sequential(self, paths: Sequence[Path], export_format: ExportFormat) -> list[ConversionResult]:
        return [self._service.convert_file(path, export_format) for path in paths]

    def _run_parallel(
        self, paths: Sequence[Path], export_format: ExportFormat, parallelism: int
    ) -> list[ConversionResult]:
        results: dict[Path, ConversionResult] = {}
        with concurrent.futures.ThreadPoolExecutor(max_workers=parallelism, thread_name_prefix="batch-worker") as executor:
            future_map = {executor.submit(self._service.convert_file, path, export_format): path for path in paths}
            for future in concurrent.futures.as_completed(future_map):
                results[future_map[future]] = future.result()
        return [results[path] for path in paths]


__all__ = ["BatchRunner"]
