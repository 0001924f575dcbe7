"""数据模型模块."""

from watermark_forge.models.layers import (
    # 枚举
    LayerType,
    PositionMode,
    # 图层类
    AnyLayer,
    FrameLayer,
    LayerElement,
    LogoAsset,
    LogoLayer,
    TextLayer,
    # 存储
    LayerStore,
    # 辅助函数
    generate_layer_id,
)
from watermark_forge.models.source_image import SourceImage, load_source_images

__all__ = [
    "LayerType",
    "PositionMode",
    "AnyLayer",
    "FrameLayer",
    "LayerElement",
    "LogoAsset",
    "LogoLayer",
    "TextLayer",
    "LayerStore",
    "generate_layer_id",
    "SourceImage",
    "load_source_images",
]
