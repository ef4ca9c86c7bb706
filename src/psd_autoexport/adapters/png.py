from __future__ import annotations

from .base import BasePillowEncoder
from ..formats import ExportFormat


class PNGEncoder(BasePillowEncoder):
    export_format = ExportFormat.PNG

    def save_options(self, quality: int) -> dict[str, object]:
        return {"optimize": False, "compress_level": 6}
