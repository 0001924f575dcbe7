"""合成管线.

按固定顺序把图层绘制到底图上：底图 → 边框 → Logo → 文字（从后到前），
同类图层按存储顺序绘制。

管线只消费已解析的像素几何（ResolvedLayers），从不读取相对坐标，
因此预览和导出得到完全相同的结果。
"""

from __future__ import annotations

from PIL import Image, ImageDraw, ImageFont

from watermark_forge.core.fonts import get_font
from watermark_forge.core.geometry import (
    ResolvedFrame,
    ResolvedLayers,
    ResolvedLogo,
    ResolvedText,
)
from watermark_forge.utils.image_utils import parse_color
from watermark_forge.utils.logger import setup_logger

logger = setup_logger(__name__)


def _apply_opacity(image: Image.Image, opacity: float) -> Image.Image:
    """按不透明度缩放 alpha 通道."""
    if opacity >= 1.0:
        return image
    alpha = image.getchannel("A").point(lambda p: int(p * opacity))
    result = image.copy()
    result.putalpha(alpha)
    return result


class Compositor:
    """合成器.

    Example:
        >>> compositor = Compositor()
        >>> resolved = resolve_store(store, image.width, image.height)
        >>> result = compositor.composite(image, resolved)
    """

    def composite(self, base: Image.Image, layers: ResolvedLayers) -> Image.Image:
        """合成图层到底图.

        Args:
            base: 底图（不会被修改）
            layers: 已解析的图层几何

        Returns:
            RGBA 结果图，尺寸与底图相同
        """
        result = base.convert("RGBA") if base.mode != "RGBA" else base.copy()

        for frame in layers.frames:
            result = self._draw_frame(result, frame)
        for logo in layers.logos:
            result = self._draw_logo(result, logo)
        for text in layers.texts:
            result = self._draw_text(result, text)

        return result

    def _draw_frame(self, image: Image.Image, frame: ResolvedFrame) -> Image.Image:
        """描边矩形，内部不填充.

        描边以矩形边线为中心，内外各占一半宽度。
        """
        if frame.border_width <= 0 or frame.opacity <= 0:
            return image

        temp = Image.new("RGBA", image.size, (0, 0, 0, 0))
        draw = ImageDraw.Draw(temp)

        half = frame.border_width / 2
        stroke = max(1, round(frame.border_width))
        box = (
            round(frame.x - half),
            round(frame.y - half),
            round(frame.x + frame.width + half),
            round(frame.y + frame.height + half),
        )
        draw.rectangle(box, outline=parse_color(frame.border_color, frame.opacity), width=stroke)

        return Image.alpha_composite(image, temp)

    def _draw_logo(self, image: Image.Image, logo: ResolvedLogo) -> Image.Image:
        """把 Logo 缩放到解析尺寸后绘制在解析原点."""
        if logo.raster is None or logo.opacity <= 0:
            return image

        size = (round(logo.width), round(logo.height))
        if size[0] < 1 or size[1] < 1:
            logger.debug(f"Logo {logo.layer_id} 尺寸过小，跳过: {size}")
            return image

        overlay = logo.raster
        if overlay.mode != "RGBA":
            overlay = overlay.convert("RGBA")
        overlay = _apply_opacity(overlay.resize(size, Image.Resampling.LANCZOS), logo.opacity)

        temp = Image.new("RGBA", image.size, (0, 0, 0, 0))
        temp.paste(overlay, (round(logo.x), round(logo.y)))

        return Image.alpha_composite(image, temp)

    def _draw_text(self, image: Image.Image, text: ResolvedText) -> Image.Image:
        """以基线左端点为锚点绘制文字."""
        if not text.text or text.opacity <= 0 or text.font_size <= 0:
            return image

        font = get_font(text.font_family, text.font_size, text.text)
        fill = parse_color(text.color, text.opacity)

        temp = Image.new("RGBA", image.size, (0, 0, 0, 0))
        draw = ImageDraw.Draw(temp)

        if isinstance(font, ImageFont.FreeTypeFont):
            draw.text((text.x, text.y), text.text, font=font, fill=fill, anchor="ls")
        else:
            # 位图字体不支持锚点，按包围盒底边对齐基线
            bottom = draw.textbbox((0, 0), text.text, font=font)[3]
            draw.text((text.x, text.y - bottom), text.text, font=font, fill=fill)

        return Image.alpha_composite(image, temp)


# ===================
# 便捷函数
# ===================


def composite(base: Image.Image, layers: ResolvedLayers) -> Image.Image:
    """合成图层到底图（便捷函数）."""
    return Compositor().composite(base, layers)
