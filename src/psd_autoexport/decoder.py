"""Layered document decoding backed by psd-tools."""

from __future__ import annotations

import io
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Iterator

from PIL import Image
from psd_tools import PSDImage

from .errors import DecodeError, IoError

logger = logging.getLogger(__name__)

OPAQUE = 255


@dataclass(slots=True)
class Layer:
    name: str
    image: Image.Image
    left: int = 0
    top: int = 0
    opacity: int = OPAQUE
    visible: bool = True
    clipping: bool = False


@dataclass(slots=True)
class LayeredDocument:
    """Canvas size plus pixel layers in document order, bottom first."""

    width: int
    height: int
    layers: list[Layer] = field(default_factory=list)
    merged: Image.Image | None = None

    @property
    def size(self) -> tuple[int, int]:
        return (self.width, self.height)


def decode_document(path: Path) -> LayeredDocument:
    try:
        payload = path.read_bytes()
    except FileNotFoundError as exc:
        raise IoError(f"Source file does not exist: {path}", code="NOT_FOUND") from exc
    except OSError as exc:
        raise IoError(f"Cannot read {path}: {exc}") from exc
    return decode_bytes(payload, name=path.name)


def decode_bytes(payload: bytes, *, name: str = "<memory>") -> LayeredDocument:
    if not payload:
        raise DecodeError(f"{name} is empty")
    try:
        psd = PSDImage.open(io.BytesIO(payload))
        layers = list(_collect_layers(psd, visible=True, opacity=OPAQUE))
        merged = None if layers else _merged_image(psd)
        width, height = int(psd.width), int(psd.height)
    except DecodeError:
        raise
    except Exception as exc:
        raise DecodeError(f"Cannot parse {name}: {exc}") from exc
    if width <= 0 or height <= 0:
        raise DecodeError(f"{name} has an empty canvas ({width}x{height})")
    logger.debug("Decoded %s: %dx%d, %d layers", name, width, height, len(layers))
    return LayeredDocument(width=width, height=height, layers=layers, merged=merged)


def _collect_layers(group: Iterable, *, visible: bool, opacity: int) -> Iterator[Layer]:
    for item in group:
        item_visible = visible and bool(item.visible)
        item_opacity = (opacity * int(item.opacity)) // OPAQUE
        if item.is_group():
            yield from _collect_layers(item, visible=item_visible, opacity=item_opacity)
            continue
        pixels = item.topil()
        if pixels is None or pixels.width == 0 or pixels.height == 0:
            continue
        yield Layer(
            name=str(item.name),
            image=pixels.convert("RGBA"),
            left=int(item.left),
            top=int(item.top),
            opacity=item_opacity,
            visible=item_visible,
            clipping=bool(getattr(item, "clipping_layer", False)),
        )


def _merged_image(psd: PSDImage) -> Image.Image:
    merged = psd.topil()
    if merged is None:
        raise DecodeError("Document has neither layers nor a merged image")
    return merged.convert("RGBA")


__all__ = ["Layer", "LayeredDocument", "decode_bytes", "decode_document"]
