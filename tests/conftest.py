"""Pytest 配置和共享 fixtures."""

import io
import os

import pytest
from PIL import Image

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

from watermark_forge.models.layers import LayerStore, LogoAsset  # noqa: E402
from watermark_forge.services.preset_store import MemoryStore, PresetManager  # noqa: E402


def make_png_bytes(size=(40, 20), color=(255, 0, 0, 255)) -> bytes:
    """生成 PNG 字节."""
    buffer = io.BytesIO()
    Image.new("RGBA", size, color).save(buffer, format="PNG")
    return buffer.getvalue()


def fixed_width_measure(text: str, font_family: str, font_size: float) -> float:
    """与字体无关的文字宽度：每个字符占半个字号."""
    return len(text) * font_size * 0.5


@pytest.fixture
def png_bytes() -> bytes:
    """40x20 红色 PNG."""
    return make_png_bytes()


@pytest.fixture
def logo_asset(png_bytes) -> LogoAsset:
    """40x20 Logo 资源（高宽比 0.5）."""
    return LogoAsset.from_bytes(png_bytes, "logo.png")


@pytest.fixture
def white_image() -> Image.Image:
    """1000x1000 白色底图."""
    return Image.new("RGBA", (1000, 1000), (255, 255, 255, 255))


@pytest.fixture
def store() -> LayerStore:
    """空图层存储."""
    return LayerStore()


@pytest.fixture
def measure():
    """固定宽度的文字测量函数."""
    return fixed_width_measure


@pytest.fixture
def preset_manager() -> PresetManager:
    """使用内存存储的预设管理器."""
    return PresetManager(MemoryStore())


@pytest.fixture
def make_png():
    """PNG 字节生成函数."""
    return make_png_bytes
