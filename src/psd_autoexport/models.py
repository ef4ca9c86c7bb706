"""Domain models shared by the watch loop, batch runner and converter."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from .formats import ExportFormat
from .runlog import BatchSummary


class TargetKind(str, Enum):
    FILE = "file"
    DIRECTORY = "directory"


@dataclass(frozen=True, slots=True)
class WatchTarget:
    """Root supplied by the user; fixed for the lifetime of the process."""

    path: Path
    kind: TargetKind

    @property
    def is_directory(self) -> bool:
        return self.kind is TargetKind.DIRECTORY


class EventKind(str, Enum):
    CREATED = "created"
    MODIFIED = "modified"
    REMOVED = "removed"
    RENAMED = "renamed"


@dataclass(frozen=True, slots=True)
class RawEvent:
    """Single observation from the filesystem subscription."""

    path: Path
    kind: EventKind
    timestamp: float


@dataclass(slots=True)
class PendingEntry:
    path: Path
    last_seen: float
    pending: bool = True


@dataclass(frozen=True, slots=True)
class ConversionJob:
    source_path: Path
    target_path: Path
    format: ExportFormat


class ConversionStatus(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"


@dataclass(slots=True)
class ConversionResult:
    """Outcome of one conversion attempt."""

    source_path: Path
    target_path: Path | None
    status: ConversionStatus
    error_code: str | None = None
    error_message: str | None = None
    elapsed_ms: float = 0.0

    @property
    def succeeded(self) -> bool:
        return self.status is ConversionStatus.SUCCESS


@dataclass(slots=True)
class BatchConversionResult:
    """Aggregate results for a one-shot run."""

    results: list[ConversionResult] = field(default_factory=list)
    summary: BatchSummary = field(default_factory=BatchSummary)


__all__ = [
    "BatchConversionResult",
    "ConversionJob",
    "ConversionResult",
    "ConversionStatus",
    "EventKind",
    "PendingEntry",
    "RawEvent",
    "TargetKind",
    "WatchTarget",
]
