from __future__ import annotations

import io
from typing import Protocol

from PIL import Image

from ..errors import EncodeError
from ..formats import ExportFormat


class Encoder(Protocol):
    export_format: ExportFormat

    def encode(self, image: Image.Image, quality: int) -> bytes:  # pragma: no cover - interface
        ...


class BasePillowEncoder:
    """Serialises an RGBA raster with Pillow into an in-memory buffer."""

    export_format: ExportFormat

    def prepare(self, image: Image.Image) -> Image.Image:
        return image

    def save_options(self, quality: int) -> dict[str, object]:
        return {}

    def encode(self, image: Image.Image, quality: int) -> bytes:
        buffer = io.BytesIO()
        try:
            prepared = self.prepare(image)
            prepared.save(buffer, format=self.export_format.pillow_format, **self.save_options(quality))
        except (OSError, ValueError, KeyError, MemoryError) as exc:
            raise EncodeError(f"Cannot encode {self.export_format.value}: {exc}") from exc
        return buffer.getvalue()


def flatten_alpha(image: Image.Image, background: tuple[int, int, int] = (255, 255, 255)) -> Image.Image:
    if image.mode != "RGBA":
        return image.convert("RGB")
    base = Image.new("RGB", image.size, background)
    base.paste(image, mask=image.getchannel("A"))
    return base
