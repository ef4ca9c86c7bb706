from __future__ import annotations

from .base import BasePillowEncoder
from ..formats import ExportFormat


class WebPEncoder(BasePillowEncoder):
    export_format = ExportFormat.WEBP

    def save_options(self, quality: int) -> dict[str, object]:
        return {"quality": quality, "method": 4}
