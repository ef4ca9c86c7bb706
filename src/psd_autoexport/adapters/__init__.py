from __future__ import annotations

from functools import lru_cache
from typing import Dict, Type

from .base import BasePillowEncoder, Encoder
from .jpeg import JPEGEncoder
from .png import PNGEncoder
from .tiff import TIFFEncoder
from .webp import WebPEncoder
from ..errors import EncodeError
from ..formats import ExportFormat

_ENCODER_CLASSES: Dict[ExportFormat, Type[BasePillowEncoder]] = {
    ExportFormat.PNG: PNGEncoder,
    ExportFormat.JPG: JPEGEncoder,
    ExportFormat.WEBP: WebPEncoder,
    ExportFormat.TIFF: TIFFEncoder,
}


@lru_cache(maxsize=len(_ENCODER_CLASSES))
def get_encoder(export_format: ExportFormat) -> Encoder:
    encoder_cls = _ENCODER_CLASSES.get(export_format)
    if not encoder_cls:
        raise EncodeError(f"No encoder registered for {export_format}", code="NO_ENCODER")
    return encoder_cls()


__all__ = [
    "BasePillowEncoder",
    "Encoder",
    "get_encoder",
]
