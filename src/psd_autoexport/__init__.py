"""Automatic flattened exports of layered PSD documents."""

from .batch import BatchRunner
from .config import AppConfig, load_config
from .core import ConversionService
from .debounce import Debouncer
from .dispatcher import Dispatcher, resolve_target
from .formats import ExportFormat
from .matching import PathMatcher
from .models import BatchConversionResult, ConversionResult, WatchTarget
from .watcher import Watcher

__all__ = [
    "AppConfig",
    "BatchConversionResult",
    "BatchRunner",
    "ConversionResult",
    "ConversionService",
    "Debouncer",
    "Dispatcher",
    "ExportFormat",
    "PathMatcher",
    "WatchTarget",
    "Watcher",
    "load_config",
    "resolve_target",
]
