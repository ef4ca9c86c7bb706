"""Exception hierarchy shared by the watcher, batch runner and converter."""

from __future__ import annotations

from pathlib import Path


class AutoExportError(RuntimeError):
    """Base class for every error raised by psd-autoexport."""


class InvalidTarget(AutoExportError):
    """The path given on the command line cannot be watched or exported."""

    def __init__(self, path: Path, reason: str) -> None:
        super().__init__(f"{reason}: {path}")
        self.path = path
        self.reason = reason


class InvalidPath(AutoExportError):
    """An output path cannot be derived from a source path."""


class WatchError(AutoExportError):
    """The filesystem subscription could not be set up or was lost."""


class ConversionError(AutoExportError):
    code = "CONVERSION"

    def __init__(self, message: str, *, code: str | None = None) -> None:
        super().__init__(message)
        if code is not None:
            self.code = code


class DecodeError(ConversionError):
    code = "DECODE"


class EncodeError(ConversionError):
    code = "ENCODE"


class IoError(ConversionError):
    code = "IO"


__all__ = [
    "AutoExportError",
    "ConversionError",
    "DecodeError",
    "EncodeError",
    "InvalidPath",
    "InvalidTarget",
    "IoError",
    "WatchError",
]
