from __future__ import annotations

from pathlib import Path

import pytest
from PIL import Image

from psd_autoexport.config import AppConfig, RuntimeConfig
from psd_autoexport.decoder import Layer, LayeredDocument
from psd_autoexport.errors import DecodeError


def solid_layer(color: tuple[int, int, int, int], size: tuple[int, int] = (4, 4), **kwargs) -> Layer:
    return Layer(name=kwargs.pop("name", "layer"), image=Image.new("RGBA", size, color), **kwargs)


def fake_decoder(path: Path) -> LayeredDocument:
    """Reads ``color:R,G,B`` text documents; anything else is malformed."""

    payload = path.read_text(encoding="utf-8").strip()
    if not payload.startswith("color:"):
        raise DecodeError(f"Cannot parse {path.name}")
    red, green, blue = (int(part) for part in payload[len("color:"):].split(","))
    return LayeredDocument(width=4, height=4, layers=[solid_layer((red, green, blue, 255))])


def write_source(path: Path, color: tuple[int, int, int] = (10, 20, 30)) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("color:{},{},{}".format(*color), encoding="utf-8")
    return path


def build_config(**overrides) -> AppConfig:
    runtime = RuntimeConfig()
    for key, value in overrides.items():
        setattr(runtime, key, value)
    return AppConfig(runtime=runtime)


@pytest.fixture
def config() -> AppConfig:
    return build_config()
