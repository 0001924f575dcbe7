"""合成管线单元测试."""

import pytest
from PIL import Image

from watermark_forge.core.compositor import Compositor, composite
from watermark_forge.core.geometry import (
    ResolvedFrame,
    ResolvedLayers,
    ResolvedLogo,
    ResolvedText,
    resolve_store,
)
from watermark_forge.models.layers import FrameLayer, LogoLayer, TextLayer


# ===================
# Fixtures
# ===================


@pytest.fixture
def compositor():
    """创建合成器."""
    return Compositor()


@pytest.fixture
def base():
    """200x100 白色底图."""
    return Image.new("RGBA", (200, 100), (255, 255, 255, 255))


def red_square(size=10):
    return Image.new("RGBA", (size, size), (255, 0, 0, 255))


# ===================
# 基础行为
# ===================


class TestCompositorBasic:
    """合成器基础测试."""

    def test_empty_layers_returns_copy(self, compositor, base):
        """测试无图层时返回底图副本."""
        result = compositor.composite(base, ResolvedLayers())
        assert result is not base
        assert result.tobytes() == base.tobytes()

    def test_rgb_base_converted(self, compositor):
        """测试 RGB 底图转换为 RGBA."""
        result = compositor.composite(Image.new("RGB", (20, 20), "white"), ResolvedLayers())
        assert result.mode == "RGBA"
        assert result.size == (20, 20)

    def test_base_not_modified(self, compositor, base):
        """测试合成不修改底图."""
        original = base.tobytes()
        frame = ResolvedFrame("f", 10, 10, 50, 50, 4, "#000000", 1.0)
        compositor.composite(base, ResolvedLayers(frames=(frame,)))
        assert base.tobytes() == original


# ===================
# 边框
# ===================


class TestFrame:
    """边框绘制测试."""

    def test_stroke_only_interior_untouched(self, compositor, base):
        """测试边框只描边，内部不填充."""
        frame = ResolvedFrame("f", 20, 20, 100, 60, 4, "#0000ff", 1.0)
        result = compositor.composite(base, ResolvedLayers(frames=(frame,)))
        assert result.getpixel((20, 50)) == (0, 0, 255, 255)
        assert result.getpixel((70, 50)) == (255, 255, 255, 255)

    def test_stroke_centered_on_edge(self, compositor, base):
        """测试描边以边线为中心."""
        frame = ResolvedFrame("f", 20, 20, 100, 60, 6, "#000000", 1.0)
        result = compositor.composite(base, ResolvedLayers(frames=(frame,)))
        assert result.getpixel((18, 50))[:3] == (0, 0, 0)
        assert result.getpixel((22, 50))[:3] == (0, 0, 0)
        assert result.getpixel((25, 50)) == (255, 255, 255, 255)

    def test_opacity(self, compositor, base):
        """测试边框不透明度."""
        frame = ResolvedFrame("f", 20, 20, 100, 60, 4, "#000000", 0.5)
        result = compositor.composite(base, ResolvedLayers(frames=(frame,)))
        value = result.getpixel((20, 50))[0]
        assert 120 <= value <= 135

    def test_zero_border_draws_nothing(self, compositor, base):
        """测试边框宽度为 0 时不绘制."""
        frame = ResolvedFrame("f", 20, 20, 100, 60, 0, "#000000", 1.0)
        result = compositor.composite(base, ResolvedLayers(frames=(frame,)))
        assert result.tobytes() == base.tobytes()


# ===================
# Logo
# ===================


class TestLogo:
    """Logo 绘制测试."""

    def test_scaled_to_resolved_size(self, compositor, base):
        """测试 Logo 缩放到解析尺寸并绘制在解析原点."""
        logo = ResolvedLogo("l", 50, 20, 40, 40, 1.0, raster=red_square())
        result = compositor.composite(base, ResolvedLayers(logos=(logo,)))
        assert result.getpixel((51, 21)) == (255, 0, 0, 255)
        assert result.getpixel((88, 58)) == (255, 0, 0, 255)
        assert result.getpixel((92, 62)) == (255, 255, 255, 255)
        assert result.getpixel((48, 20)) == (255, 255, 255, 255)

    def test_opacity(self, compositor, base):
        """测试 Logo 不透明度."""
        logo = ResolvedLogo("l", 0, 0, 20, 20, 0.5, raster=red_square())
        result = compositor.composite(base, ResolvedLayers(logos=(logo,)))
        r, g, b, a = result.getpixel((10, 10))
        assert r == 255
        assert 120 <= g <= 135
        assert a == 255

    def test_semi_transparent_asset(self, compositor, base):
        """测试半透明 Logo 按其自身 alpha 混合."""
        asset = Image.new("RGBA", (10, 10), (255, 0, 0, 128))
        logo = ResolvedLogo("l", 0, 0, 10, 10, 1.0, raster=asset)
        result = compositor.composite(base, ResolvedLayers(logos=(logo,)))
        r, g, b, a = result.getpixel((5, 5))
        assert r == 255
        assert 125 <= g <= 129 and 125 <= b <= 129
        assert a == 255

    def test_opacity_over_transparent_base(self, compositor):
        """测试透明底图上 Logo 的 alpha 等于不透明度."""
        base = Image.new("RGBA", (20, 20), (0, 0, 0, 0))
        logo = ResolvedLogo("l", 0, 0, 20, 20, 0.5, raster=red_square())
        result = compositor.composite(base, ResolvedLayers(logos=(logo,)))
        r, g, b, a = result.getpixel((10, 10))
        assert r == 255
        assert 125 <= a <= 129

    def test_partially_outside(self, compositor, base):
        """测试部分超出底图的 Logo 被裁剪."""
        logo = ResolvedLogo("l", -5, -5, 10, 10, 1.0, raster=red_square())
        result = compositor.composite(base, ResolvedLayers(logos=(logo,)))
        assert result.getpixel((0, 0)) == (255, 0, 0, 255)
        assert result.size == base.size

    def test_missing_raster_skipped(self, compositor, base):
        """测试没有图片的 Logo 被跳过."""
        logo = ResolvedLogo("l", 0, 0, 20, 20, 1.0)
        result = compositor.composite(base, ResolvedLayers(logos=(logo,)))
        assert result.tobytes() == base.tobytes()


# ===================
# 文字
# ===================


class TestText:
    """文字绘制测试."""

    def test_text_drawn_above_baseline(self, compositor, base):
        """测试文字绘制在基线上方."""
        text = ResolvedText("t", 10, 80, 40, "Arial", "#000000", "HHHH", 1.0)
        result = compositor.composite(base, ResolvedLayers(texts=(text,)))

        diff = [
            (x, y)
            for y in range(base.height)
            for x in range(base.width)
            if result.getpixel((x, y)) != (255, 255, 255, 255)
        ]
        assert diff
        assert max(y for _, y in diff) <= 82
        assert min(x for x, _ in diff) >= 8

    def test_empty_text_skipped(self, compositor, base):
        """测试空文字不绘制."""
        text = ResolvedText("t", 10, 80, 40, "Arial", "#000000", "", 1.0)
        result = compositor.composite(base, ResolvedLayers(texts=(text,)))
        assert result.tobytes() == base.tobytes()


# ===================
# 绘制顺序
# ===================


class TestDrawOrder:
    """绘制顺序测试."""

    def test_logo_over_frame(self, compositor, base):
        """测试 Logo 绘制在边框之上."""
        frame = ResolvedFrame("f", 20, 20, 100, 60, 10, "#0000ff", 1.0)
        logo = ResolvedLogo("l", 10, 10, 20, 20, 1.0, raster=red_square())
        result = compositor.composite(base, ResolvedLayers(frames=(frame,), logos=(logo,)))
        assert result.getpixel((20, 20)) == (255, 0, 0, 255)

    def test_later_logo_on_top(self, compositor, base):
        """测试同类图层后绘制的在上层."""
        first = ResolvedLogo("a", 0, 0, 20, 20, 1.0, raster=red_square())
        second = ResolvedLogo("b", 10, 10, 20, 20, 1.0, raster=Image.new("RGBA", (10, 10), (0, 255, 0, 255)))
        result = compositor.composite(base, ResolvedLayers(logos=(first, second)))
        assert result.getpixel((15, 15)) == (0, 255, 0, 255)

    def test_store_pipeline(self, store, logo_asset):
        """测试从图层存储解析后合成."""
        image = Image.new("RGBA", (400, 400), (255, 255, 255, 255))
        store.add(FrameLayer.create())
        store.add(LogoLayer.create(logo_asset))
        store.add(TextLayer.create())
        result = composite(image, resolve_store(store, *image.size))
        assert result.size == image.size
        assert result.tobytes() != image.tobytes()
