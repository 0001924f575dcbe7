"""源图片模型.

批量导出的输入：按顺序排列的 (文件名, 图片) 对，加载后不再修改。
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from PIL import Image

from watermark_forge.utils.exceptions import DecodeError
from watermark_forge.utils.image_utils import decode_image_async
from watermark_forge.utils.logger import setup_logger

logger = setup_logger(__name__)


@dataclass(frozen=True)
class SourceImage:
    """单张源图片.

    Attributes:
        filename: 原始文件名（导出时沿用）
        raster: 解码后的 RGBA 图片
    """

    filename: str
    raster: Image.Image

    @property
    def width(self) -> int:
        return self.raster.width

    @property
    def height(self) -> int:
        return self.raster.height

    @property
    def size(self) -> tuple[int, int]:
        return self.raster.size

    @classmethod
    async def from_bytes(cls, filename: str, data: bytes) -> "SourceImage":
        """异步解码并创建源图片.

        Raises:
            DecodeError: 图片无法解码
        """
        decoded = await decode_image_async(data, filename)
        return cls(filename=filename, raster=decoded.raster)


async def load_source_images(
    files: Iterable[tuple[str, bytes]],
) -> tuple[list[SourceImage], list[DecodeError]]:
    """按顺序解码一组文件.

    单个文件解码失败只影响该文件，其余文件照常加载。

    Args:
        files: (文件名, 字节) 序列

    Returns:
        (成功加载的源图片列表, 解码错误列表)
    """
    images: list[SourceImage] = []
    errors: list[DecodeError] = []
    for filename, data in files:
        try:
            images.append(await SourceImage.from_bytes(filename, data))
        except DecodeError as e:
            logger.warning(f"跳过无法解码的图片: {filename}")
            errors.append(e)
    logger.info(f"已加载源图片 {len(images)} 张，失败 {len(errors)} 张")
    return images, errors
