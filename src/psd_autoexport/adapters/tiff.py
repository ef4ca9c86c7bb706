from __future__ import annotations

from .base import BasePillowEncoder
from ..formats import ExportFormat


class TIFFEncoder(BasePillowEncoder):
    export_format = ExportFormat.TIFF

    def save_options(self, quality: int) -> dict[str, object]:
        return {"compression": "tiff_deflate"}
