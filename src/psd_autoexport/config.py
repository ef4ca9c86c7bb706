from __future__ import annotations

import json
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Mapping

from .constants import DEFAULT_CONFIG_PATH, DEFAULT_QUIET_WINDOW_MS, DEFAULT_SOURCE_EXTENSIONS
from .formats import ExportFormat


@dataclass(slots=True)
class RuntimeConfig:
    output_format: ExportFormat = ExportFormat.PNG
    jpeg_quality: int = 90
    source_extensions: tuple[str, ...] = DEFAULT_SOURCE_EXTENSIONS
    quiet_window_ms: int = DEFAULT_QUIET_WINDOW_MS
    worker_pool_size: int = 2
    batch_parallelism: int = 1
    log_file: Path | None = None
    log_level: str = "INFO"

    @property
    def quiet_window_s(self) -> float:
        return max(self.quiet_window_ms, 0) / 1000.0


@dataclass(slots=True)
class AppConfig:
    runtime: RuntimeConfig = field(default_factory=RuntimeConfig)


def _read_toml(path: Path) -> Mapping[str, object]:
    if not path.exists():
        return {}
    with path.open("rb") as handle:
        return tomllib.load(handle)


def _extensions(value: object | None, default: Iterable[str]) -> tuple[str, ...]:
    if not value:
        return tuple(default)
    if isinstance(value, str):
        value = [value]
    if isinstance(value, Iterable):
        normalized = []
        for item in value:
            text = str(item).strip().lower()
            if not text:
                continue
            normalized.append(text if text.startswith(".") else f".{text}")
        return tuple(normalized) or tuple(default)
    raise TypeError(f"Unsupported source_extensions configuration: {value!r}")


def _clamp_quality(value: int) -> int:
    return max(1, min(int(value), 100))


def _build_runtime(data: Mapping[str, object] | None) -> RuntimeConfig:
    if not data:
        return RuntimeConfig()
    log_file = data.get("log_file")
    return RuntimeConfig(
        output_format=ExportFormat.parse(str(data.get("output_format", "png"))),
        jpeg_quality=_clamp_quality(int(data.get("jpeg_quality", 90))),
        source_extensions=_extensions(data.get("source_extensions"), DEFAULT_SOURCE_EXTENSIONS),
        quiet_window_ms=int(data.get("quiet_window_ms", DEFAULT_QUIET_WINDOW_MS)),
        worker_pool_size=int(data.get("worker_pool_size", 2)),
        batch_parallelism=int(data.get("batch_parallelism", 1)),
        log_file=Path(str(log_file)) if log_file else None,
        log_level=str(data.get("log_level", "INFO")).upper(),
    )


def load_config(path: Path | None = None) -> AppConfig:
    path = path or DEFAULT_CONFIG_PATH
    raw = _read_toml(path)
    runtime_data = raw.get("runtime") if isinstance(raw, Mapping) else None
    runtime = _build_runtime(runtime_data if isinstance(runtime_data, Mapping) else None)
    return AppConfig(runtime=runtime)


def dump_config(config: AppConfig) -> str:
    payload = {
        "runtime": {
            "output_format": config.runtime.output_format.value,
            "jpeg_quality": config.runtime.jpeg_quality,
            "source_extensions": list(config.runtime.source_extensions),
            "quiet_window_ms": config.runtime.quiet_window_ms,
            "worker_pool_size": config.runtime.worker_pool_size,
            "batch_parallelism": config.runtime.batch_parallelism,
            "log_file": str(config.runtime.log_file) if config.runtime.log_file else None,
            "log_level": config.runtime.log_level,
        },
    }
    return json.dumps(payload, indent=2)


__all__ = ["AppConfig", "RuntimeConfig", "dump_config", "load_config"]
