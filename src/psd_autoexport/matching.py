from __future__ import annotations

from pathlib import Path
from typing import Iterable

from .constants import DEFAULT_SOURCE_EXTENSIONS
from .errors import InvalidPath
from .formats import ExportFormat

class PathMatcher:
    """Decides which files are layered sources and where their renders go."""

    def __init__(self, source_extensions: Iterable[str] = DEFAULT_SOURCE_EXTENSIONS) -> None:
        extensions = []
        for extension in source_extensions:
            text = extension.strip().lower()
            extensions.append(text if text.startswith(".") else f".{text}")
        self._extensions = frozenset(extensions)

    @property
    def extensions(self) -> frozenset[str]:
        return self._extensions

    def is_source(self, path: Path) -> bool:
        return path.suffix.lower() in self._extensions

    def output_path(self, path: Path, format: ExportFormat) -> Path:
        stem = path.stem
        if not stem or (stem == path.name and stem.startswith(".")):
            raise InvalidPath(f"Cannot derive an output name from {path}")
        return path.with_name(f"{stem}{format.extension}")


__all__ = ["PathMatcher"]
