"""字体管理.

查找并缓存字体，提供文字测量。命中测试与渲染共用同一套字体，
保证文字包围盒和实际绘制结果一致。
"""

from __future__ import annotations

import os
from functools import lru_cache
from typing import Optional, Union

from PIL import ImageFont

from watermark_forge.utils.logger import setup_logger

logger = setup_logger(__name__)

AnyFont = Union[ImageFont.FreeTypeFont, ImageFont.ImageFont]


# ===================
# 常量定义
# ===================

# 字体搜索路径
FONT_SEARCH_PATHS = [
    "/System/Library/Fonts/",
    "/System/Library/Fonts/Supplemental/",
    "/Library/Fonts/",
    "~/Library/Fonts/",
    "C:/Windows/Fonts/",
    "/usr/share/fonts/",
    "/usr/share/fonts/truetype/",
    "/usr/share/fonts/truetype/dejavu/",
    "/usr/share/fonts/TTF/",
]

# 常见字体族到文件名的映射
FONT_FILE_ALIASES = {
    "arial": ["Arial.ttf", "arial.ttf", "Arial Unicode.ttf"],
    "helvetica": ["Helvetica.ttc", "Helvetica.ttf"],
    "times new roman": ["Times New Roman.ttf", "times.ttf"],
    "georgia": ["Georgia.ttf", "georgia.ttf"],
    "verdana": ["Verdana.ttf", "verdana.ttf"],
    "courier new": ["Courier New.ttf", "cour.ttf"],
}

# 找不到指定字体时的回退列表
FALLBACK_FONTS = [
    "DejaVuSans.ttf",
    "LiberationSans-Regular.ttf",
    "Arial.ttf",
    "arial.ttf",
]

# 中日韩字体回退列表
CJK_FONT_FALLBACKS = [
    "PingFang.ttc",
    "Hiragino Sans GB.ttc",
    "msyh.ttc",
    "simhei.ttf",
    "wqy-microhei.ttc",
    "NotoSansCJK-Regular.ttc",
]


def _has_cjk_characters(text: str) -> bool:
    """检查文本是否包含中日韩字符."""
    for char in text:
        if "\u4e00" <= char <= "\u9fff" or "\u3400" <= char <= "\u4dbf":
            return True
    return False


def _search_font_file(file_names: list[str], size: int) -> Optional[ImageFont.FreeTypeFont]:
    """在搜索路径中查找第一个可加载的字体文件."""
    for search_path in FONT_SEARCH_PATHS:
        expanded_path = os.path.expanduser(search_path)
        if not os.path.isdir(expanded_path):
            continue
        for name in file_names:
            font_path = os.path.join(expanded_path, name)
            if os.path.exists(font_path):
                try:
                    return ImageFont.truetype(font_path, size)
                except OSError:
                    continue
    return None


def _font_candidates(font_family: str) -> list[str]:
    family = font_family.strip()
    candidates = list(FONT_FILE_ALIASES.get(family.lower(), []))
    candidates.extend([f"{family}.ttf", f"{family}.otf", f"{family}.ttc"])
    return candidates


@lru_cache(maxsize=64)
def find_font(font_family: str, font_size: int, cjk: bool = False) -> AnyFont:
    """查找字体.

    依次尝试：字体名直接加载 → 搜索路径中的同名文件 → CJK 回退（需要时）
    → 通用回退 → Pillow 内置字体。

    Args:
        font_family: 字体名称
        font_size: 字号（像素）
        cjk: 文本是否包含中日韩字符

    Returns:
        字体对象
    """
    size = max(1, int(font_size))

    if font_family:
        try:
            return ImageFont.truetype(font_family, size)
        except OSError:
            pass
        font = _search_font_file(_font_candidates(font_family), size)
        if font:
            return font

    if cjk:
        font = _search_font_file(CJK_FONT_FALLBACKS, size)
        if font:
            return font

    font = _search_font_file(FALLBACK_FONTS, size)
    if font:
        logger.debug(f"字体 '{font_family}' 未找到，使用回退字体")
        return font

    logger.warning(f"字体 '{font_family}' 未找到，使用内置字体")
    return ImageFont.load_default(size=size)


def get_font(font_family: str, font_size: float, text: str = "") -> AnyFont:
    """按文本内容选择字体."""
    return find_font(font_family, max(1, round(font_size)), _has_cjk_characters(text))


def measure_text_width(text: str, font_family: str, font_size: float) -> float:
    """测量文字的前进宽度（像素）.

    Args:
        text: 文字内容
        font_family: 字体名称
        font_size: 字号

    Returns:
        文字宽度
    """
    if not text:
        return 0.0
    font = get_font(font_family, font_size, text)
    return float(font.getlength(text))
