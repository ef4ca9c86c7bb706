from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

from PIL import Image

from .adapters import get_encoder
from .compositing import flatten
from .config import AppConfig
from .decoder import LayeredDocument, decode_document
from .errors import ConversionError, EncodeError, InvalidPath, IoError
from .formats import ExportFormat
from .matching import PathMatcher
from .models import ConversionJob, ConversionResult, ConversionStatus
from .runlog import RunLogEntry, RunLogger, StageTimings
from .utils import atomic_write_bytes

logger = logging.getLogger(__name__)

Decoder = Callable[[Path], LayeredDocument]


@dataclass(slots=True)
class _Rendered:
    payload: bytes
    timings: StageTimings


class ConversionService:
    def __init__(
        self,
        config: AppConfig,
        *,
        decoder: Decoder = decode_document,
        matcher: PathMatcher | None = None,
        run_logger: RunLogger | None = None,
    ) -> None:
        self._config = config
        self._decoder = decoder
        self._matcher = matcher or PathMatcher(config.runtime.source_extensions)
        if run_logger is None and config.runtime.log_file is not None:
            run_logger = RunLogger(config.runtime.log_file)
        self._run_logger = run_logger

    @property
    def matcher(self) -> PathMatcher:
        return self._matcher

    def build_job(self, source_path: Path, export_format: ExportFormat | None = None) -> ConversionJob:
        export_format = export_format or self._config.runtime.output_format
        return ConversionJob(
            source_path=source_path,
            target_path=self._matcher.output_path(source_path, export_format),
            format=export_format,
        )

    def convert(self, source_path: Path, target_path: Path, export_format: ExportFormat) -> ConversionResult:
        return self.run_job(ConversionJob(source_path, target_path, export_format))

    def convert_file(self, source_path: Path, export_format: ExportFormat | None = None) -> ConversionResult:
        start = time.perf_counter()
        try:
            job = self.build_job(source_path, export_format)
        except InvalidPath as exc:
            logger.error("Export failed %s: %s", source_path, exc)
            return ConversionResult(
                source_path=source_path,
                target_path=None,
                status=ConversionStatus.FAILURE,
                error_code="INVALID_PATH",
                error_message=str(exc),
                elapsed_ms=(time.perf_counter() - start) * 1000,
            )
        return self.run_job(job)

    def run_job(self, job: ConversionJob) -> ConversionResult:
        """Convert one document, capturing per-file failures in the result."""

        start = time.perf_counter()
        logger.info("Exporting %s", job.source_path)
        try:
            rendered = self.convert_job(job)
        except ConversionError as exc:
            elapsed = (time.perf_counter() - start) * 1000
            logger.error("Export failed %s [%s]: %s", job.source_path, exc.code, exc)
            self._append_log(job, "failure", exc.code, StageTimings(), 0)
            return ConversionResult(
                source_path=job.source_path,
                target_path=job.target_path,
                status=ConversionStatus.FAILURE,
                error_code=exc.code,
                error_message=str(exc),
                elapsed_ms=elapsed,
            )

        elapsed = (time.perf_counter() - start) * 1000
        logger.info("Exported %s -> %s in %.0f ms", job.source_path, job.target_path, elapsed)
        self._append_log(job, "success", None, rendered.timings, len(rendered.payload))
        return ConversionResult(
            source_path=job.source_path,
            target_path=job.target_path,
            status=ConversionStatus.SUCCESS,
            elapsed_ms=elapsed,
        )

    def convert_job(self, job: ConversionJob) -> _Rendered:
        """Decode, flatten, encode and atomically write; raises ConversionError."""

        timings = StageTimings()

        decode_start = time.perf_counter()
        document = self._decoder(job.source_path)
        timings.decode_ms = (time.perf_counter() - decode_start) * 1000

        flatten_start = time.perf_counter()
        try:
            raster = flatten(document)
        except (MemoryError, ValueError) as exc:
            raise EncodeError(f"Cannot flatten {job.source_path}: {exc}") from exc
        timings.flatten_ms = (time.perf_counter() - flatten_start) * 1000

        encode_start = time.perf_counter()
        payload = self._encode(raster, job.format)
        timings.encode_ms = (time.perf_counter() - encode_start) * 1000

        write_start = time.perf_counter()
        self._write_output(job.target_path, payload)
        timings.write_ms = (time.perf_counter() - write_start) * 1000
        return _Rendered(payload=payload, timings=timings)

    def _encode(self, raster: Image.Image, export_format: ExportFormat) -> bytes:
        encoder = get_encoder(export_format)
        return encoder.encode(raster, self._config.runtime.jpeg_quality)

    def _write_output(self, target_path: Path, payload: bytes) -> None:
        try:
            atomic_write_bytes(target_path, payload)
        except OSError as exc:
            raise IoError(f"Cannot write {target_path}: {exc}") from exc

    def _append_log(
        self,
        job: ConversionJob,
        status: str,
        error_code: str | None,
        timings: StageTimings,
        size_bytes: int,
    ) -> None:
        if self._run_logger is None:
            return
        entry = RunLogEntry(
            source=str(job.source_path),
            target=str(job.target_path),
            status=status,
            format=job.format.value,
            error_code=error_code,
            timings=timings,
            size_bytes=size_bytes,
        )
        try:
            self._run_logger.append(entry)
        except OSError as exc:
            logger.warning("Cannot append to run log %s: %s", self._run_logger.path, exc)


__all__ = ["ConversionService", "Decoder"]
