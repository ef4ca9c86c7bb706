from __future__ import annotations

import os
import tempfile
from pathlib import Path
from typing import Callable, Iterator


def normalise_path(path: Path) -> Path:
    """Absolute path without resolving symlinks of the final component."""

    return Path(os.path.abspath(os.path.expanduser(str(path))))


def atomic_write_bytes(path: Path, data: bytes) -> None:
    """Write *data* next to *path* under a temporary name, then rename over it."""

    path.parent.mkdir(parents=True, exist_ok=True)
    with tempfile.NamedTemporaryFile(
        "wb",
        delete=False,
        dir=path.parent,
        prefix=f".{path.name}.",
        suffix=".tmp",
    ) as tmp:
        tmp_path = Path(tmp.name)
        try:
            tmp.write(data)
            tmp.flush()
            os.fsync(tmp.fileno())
        except BaseException:
            tmp.close()
            tmp_path.unlink(missing_ok=True)
            raise
    try:
        os.replace(tmp_path, path)
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise


def iter_files(root: Path, predicate: Callable[[Path], bool]) -> Iterator[Path]:
    if root.is_file():
        if predicate(root):
            yield root
        return
    if root.is_dir():
        for file_path in sorted(root.rglob("*")):
            if file_path.is_file() and predicate(file_path):
                yield file_path


__all__ = ["atomic_write_bytes", "iter_files", "normalise_path"]
