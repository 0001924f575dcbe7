"""图片工具函数模块.

提供图片解码、编码、data URI 转换和颜色解析等工具函数。
解码与编码各有同步版本和在线程池中执行的异步版本。
"""

from __future__ import annotations

import asyncio
import base64
import binascii
import io
from dataclasses import dataclass
from typing import Optional

from PIL import Image, ImageColor, ImageOps, UnidentifiedImageError

from watermark_forge.utils.constants import OUTPUT_FORMAT
from watermark_forge.utils.exceptions import DecodeError, EncodeError
from watermark_forge.utils.logger import setup_logger

logger = setup_logger(__name__)

RGBAColor = tuple[int, int, int, int]


@dataclass(frozen=True)
class DecodedImage:
    """解码结果.

    Attributes:
        raster: RGBA 模式的 PIL 图片
        width: 宽度（像素）
        height: 高度（像素）
    """

    raster: Image.Image
    width: int
    height: int


def decode_image(data: bytes, source: str = "") -> DecodedImage:
    """解码图片数据.

    Args:
        data: 编码后的图片字节
        source: 来源描述（文件名等），用于错误信息

    Returns:
        DecodedImage

    Raises:
        DecodeError: 数据为空、损坏或格式无法识别
    """
    if not data:
        raise DecodeError(source, "数据为空")

    try:
        with Image.open(io.BytesIO(data)) as img:
            img.load()
            img = ImageOps.exif_transpose(img)
            raster = img.convert("RGBA")
    except (UnidentifiedImageError, OSError, ValueError, Image.DecompressionBombError) as e:
        logger.error(f"解码图片失败: {source or '<bytes>'}, {e}")
        raise DecodeError(source, str(e)) from e

    return DecodedImage(raster=raster, width=raster.width, height=raster.height)


def encode_image(image: Image.Image, source: str = "") -> bytes:
    """将图片编码为无损 PNG 字节.

    Args:
        image: PIL 图片
        source: 来源描述，用于错误信息

    Returns:
        PNG 字节

    Raises:
        EncodeError: 编码失败
    """
    buffer = io.BytesIO()
    try:
        image.save(buffer, format=OUTPUT_FORMAT)
    except (OSError, ValueError) as e:
        logger.error(f"编码图片失败: {source or '<image>'}, {e}")
        raise EncodeError(source, str(e)) from e
    return buffer.getvalue()


async def decode_image_async(data: bytes, source: str = "") -> DecodedImage:
    """在线程池中解码图片."""
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, decode_image, data, source)


async def encode_image_async(image: Image.Image, source: str = "") -> bytes:
    """在线程池中编码图片."""
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, encode_image, image, source)


def guess_mime_type(data: bytes) -> str:
    """根据文件头推断 MIME 类型.

    Args:
        data: 图片字节

    Returns:
        MIME 类型，无法识别时返回 application/octet-stream
    """
    try:
        with Image.open(io.BytesIO(data)) as img:
            mime = Image.MIME.get(img.format or "")
    except (UnidentifiedImageError, OSError):
        mime = None
    return mime or "application/octet-stream"


def bytes_to_data_uri(data: bytes, mime_type: Optional[str] = None) -> str:
    """将字节编码为 data URI.

    Args:
        data: 原始字节
        mime_type: MIME 类型，默认自动推断

    Returns:
        data:<mime>;base64,<payload>
    """
    mime = mime_type or guess_mime_type(data)
    payload = base64.b64encode(data).decode("ascii")
    return f"data:{mime};base64,{payload}"


def data_uri_to_bytes(uri: str) -> bytes:
    """解析 data URI.

    Args:
        uri: data URI 字符串

    Returns:
        解码后的字节

    Raises:
        DecodeError: 不是合法的 base64 data URI
    """
    if not uri.startswith("data:") or "," not in uri:
        raise DecodeError("data URI", "格式无效")

    header, payload = uri.split(",", 1)
    if not header.endswith(";base64"):
        raise DecodeError("data URI", "仅支持 base64 编码")

    try:
        return base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise DecodeError("data URI", str(e)) from e


def parse_color(color: str, opacity: float = 1.0) -> RGBAColor:
    """解析 CSS 颜色字符串.

    Args:
        color: 颜色（如 "#ff0000"、"red"）
        opacity: 不透明度 0-1，写入 alpha 通道

    Returns:
        RGBA 颜色元组

    Raises:
        ValueError: 颜色无法识别
    """
    rgb = ImageColor.getrgb(color)
    alpha = int(round(max(0.0, min(1.0, opacity)) * 255))
    if len(rgb) == 4:
        alpha = int(round(rgb[3] * alpha / 255))
    return (rgb[0], rgb[1], rgb[2], alpha)
