"""Flattening of decoded layer stacks into a single RGBA raster."""

from __future__ import annotations

from PIL import Image, ImageChops

from .decoder import OPAQUE, Layer, LayeredDocument

TRANSPARENT = (0, 0, 0, 0)


def flatten(document: LayeredDocument) -> Image.Image:
    canvas = Image.new("RGBA", document.size, TRANSPARENT)
    if not document.layers:
        if document.merged is not None:
            canvas.paste(document.merged.convert("RGBA"), (0, 0))
        return canvas

    blank = True
    has_base = False
    base_mask: Image.Image | None = None
    for layer in document.layers:
        if layer.clipping and has_base:
            # Clipped layers only show through the coverage of their base.
            if base_mask is None:
                continue
            prepared = _prepare(layer, document.size)
            if prepared is None:
                continue
            pixels, dest = prepared
            pixels = _mask_alpha(pixels, dest, base_mask)
        else:
            has_base = True
            base_mask = None
            prepared = _prepare(layer, document.size)
            if prepared is None:
                continue
            pixels, dest = prepared
            base_mask = Image.new("L", document.size, 0)
            base_mask.paste(pixels.getchannel("A"), dest)
        if blank:
            # Source-over onto a fully transparent canvas is a plain copy.
            canvas.paste(pixels, dest)
            blank = False
        else:
            canvas.alpha_composite(pixels, dest=dest)
    return canvas


def _prepare(layer: Layer, size: tuple[int, int]) -> tuple[Image.Image, tuple[int, int]] | None:
    if not layer.visible or layer.opacity <= 0:
        return None
    clipped = _clip_to_canvas(layer, size)
    if clipped is None:
        return None
    pixels, dest = clipped
    if layer.opacity < OPAQUE:
        pixels = _apply_opacity(pixels, layer.opacity)
    return pixels, dest


def _clip_to_canvas(layer: Layer, size: tuple[int, int]) -> tuple[Image.Image, tuple[int, int]] | None:
    width, height = size
    image = layer.image if layer.image.mode == "RGBA" else layer.image.convert("RGBA")
    src_left = max(0, -layer.left)
    src_top = max(0, -layer.top)
    src_right = min(image.width, width - layer.left)
    src_bottom = min(image.height, height - layer.top)
    if src_right <= src_left or src_bottom <= src_top:
        return None
    if (src_left, src_top, src_right, src_bottom) != (0, 0, image.width, image.height):
        image = image.crop((src_left, src_top, src_right, src_bottom))
    return image, (max(layer.left, 0), max(layer.top, 0))


def _apply_opacity(image: Image.Image, opacity: int) -> Image.Image:
    alpha = image.getchannel("A").point(lambda value: (value * opacity + 127) // OPAQUE)
    faded = image.copy()
    faded.putalpha(alpha)
    return faded


def _mask_alpha(image: Image.Image, dest: tuple[int, int], mask: Image.Image) -> Image.Image:
    left, top = dest
    region = mask.crop((left, top, left + image.width, top + image.height))
    masked = image.copy()
    masked.putalpha(ImageChops.multiply(image.getchannel("A"), region))
    return masked


__all__ = ["flatten"]
