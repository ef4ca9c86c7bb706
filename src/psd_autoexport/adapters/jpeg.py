from __future__ import annotations

from PIL import Image

from .base import BasePillowEncoder, flatten_alpha
from ..formats import ExportFormat


class JPEGEncoder(BasePillowEncoder):
    export_format = ExportFormat.JPG

    def prepare(self, image: Image.Image) -> Image.Image:
        # JPEG has no alpha channel; transparent areas become white.
        return flatten_alpha(image)

    def save_options(self, quality: int) -> dict[str, object]:
        return {"quality": quality, "optimize": True}
