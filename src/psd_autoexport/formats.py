from __future__ import annotations

from enum import Enum

from .errors import EncodeError


class ExportFormat(str, Enum):
    PNG = "png"
    JPG = "jpg"
    WEBP = "webp"
    TIFF = "tiff"

    @property
    def extension(self) -> str:
        return f".{self.value}"

    @property
    def pillow_format(self) -> str:
        return PILLOW_FORMATS[self]

    @property
    def lossless(self) -> bool:
        return self in {ExportFormat.PNG, ExportFormat.TIFF}

    @classmethod
    def parse(cls, value: str | ExportFormat) -> ExportFormat:
        if isinstance(value, ExportFormat):
            return value
        normalized = str(value).strip().lower().lstrip(".")
        normalized = ALIASES.get(normalized, normalized)
        try:
            return cls(normalized)
        except ValueError as exc:
            raise EncodeError(f"Unsupported output format: {value}", code="UNSUPPORTED_FORMAT") from exc


PILLOW_FORMATS: dict[ExportFormat, str] = {
    ExportFormat.PNG: "PNG",
    ExportFormat.JPG: "JPEG",
    ExportFormat.WEBP: "WEBP",
    ExportFormat.TIFF: "TIFF",
}

ALIASES: dict[str, str] = {
    "jpeg": "jpg",
    "tif": "tiff",
}


__all__ = ["ExportFormat"]
