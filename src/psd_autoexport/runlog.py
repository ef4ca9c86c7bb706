from __future__ import annotations

import json
import threading
import time
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any


@dataclass(slots=True)
class StageTimings:
    decode_ms: float = 0.0
    flatten_ms: float = 0.0
    encode_ms: float = 0.0
    write_ms: float = 0.0


@dataclass(slots=True)
class RunLogEntry:
    source: str
    target: str | None
    status: str
    format: str
    error_code: str | None
    timings: StageTimings
    size_bytes: int
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["timings"] = asdict(self.timings)
        return payload


class RunLogger:
    """Appends one JSON line per conversion attempt."""

    def __init__(self, log_file: Path) -> None:
        self._log_file = log_file
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._log_file

    def append(self, entry: RunLogEntry) -> None:
        line = json.dumps(entry.to_dict(), ensure_ascii=False)
        with self._lock:
            self._log_file.parent.mkdir(parents=True, exist_ok=True)
            with self._log_file.open("a", encoding="utf-8") as handle:
                handle.write(line + "\n")


@dataclass(slots=True)
class BatchSummary:
    timestamp: float = field(default_factory=time.time)
    total: int = 0
    successes: int = 0
    failures: int = 0
    errors: dict[str, int] = field(default_factory=dict)

    def record(self, succeeded: bool, error_code: str | None = None) -> None:
        self.total += 1
        if succeeded:
            self.successes += 1
            return
        self.failures += 1
        key = error_code or "UNKNOWN"
        self.errors[key] = self.errors.get(key, 0) + 1

    def describe(self) -> str:
        return f"Processed {self.total} files: {self.successes} succeeded, {self.failures} failed."


__all__ = ["BatchSummary", "RunLogEntry", "RunLogger", "StageTimings"]
