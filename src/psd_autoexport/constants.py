from __future__ import annotations

from pathlib import Path

DEFAULT_CONFIG_PATH = Path("psd-autoexport.toml")
ENV_PREFIX = "PSDX_"
DEFAULT_SOURCE_EXTENSIONS = (".psd", ".psb")
DEFAULT_QUIET_WINDOW_MS = 500

__all__ = [
    "DEFAULT_CONFIG_PATH",
    "DEFAULT_QUIET_WINDOW_MS",
    "DEFAULT_SOURCE_EXTENSIONS",
    "ENV_PREFIX",
]
