"""图层数据模型.

提供水印叠加系统的数据模型：边框、Logo、文字三类图层与图层存储。

每个图层同时保存像素坐标（x, y, 尺寸）和相对坐标（rel_x, rel_y, 尺寸百分比），
由 position_mode 决定哪一组是权威值。相对坐标为参考图宽/高的百分比。

Features:
    - 图层基类与三种图层子类
    - Logo 图片资源（只读、共享）
    - 图层存储：按类型分组、按插入顺序排列
"""

from __future__ import annotations

import uuid
from enum import Enum
from typing import Any, Iterator, Optional, Union

from PIL import Image, ImageColor
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from watermark_forge.utils.exceptions import LayerNotFoundError, ValidationError
from watermark_forge.utils.image_utils import (
    bytes_to_data_uri,
    decode_image,
    decode_image_async,
)


# ===================
# 常量定义
# ===================

DEFAULT_LAYER_OPACITY = 1.0
DEFAULT_COLOR = "#000000"

# 边框默认值
DEFAULT_FRAME_GEOMETRY = (50.0, 50.0, 300.0, 200.0)
DEFAULT_FRAME_BORDER_WIDTH = 5.0
DEFAULT_FRAME_RELATIVE = (5.0, 5.0, 90.0, 90.0)
DEFAULT_FRAME_REL_BORDER_WIDTH = 0.5

# Logo 默认值
DEFAULT_LOGO_POSITION = (50.0, 50.0)
DEFAULT_LOGO_WIDTH = 150.0
DEFAULT_LOGO_RELATIVE = (5.0, 5.0)
DEFAULT_LOGO_REL_WIDTH = 15.0

# 文字默认值
DEFAULT_TEXT_CONTENT = "Sample Text"
DEFAULT_TEXT_POSITION = (100.0, 100.0)
DEFAULT_TEXT_FONT_SIZE = 48.0
DEFAULT_TEXT_FONT_FAMILY = "Arial"
DEFAULT_TEXT_RELATIVE = (50.0, 50.0)
DEFAULT_TEXT_REL_FONT_SIZE = 5.0


# ===================
# 枚举定义
# ===================


class PositionMode(str, Enum):
    """坐标模式."""

    ABSOLUTE = "absolute"  # 像素坐标为准
    RELATIVE = "relative"  # 百分比坐标为准


class LayerType(str, Enum):
    """图层类型枚举."""

    FRAME = "frame"
    LOGO = "logo"
    TEXT = "text"


# ===================
# 辅助函数
# ===================


def generate_layer_id() -> str:
    """生成唯一的图层ID.

    Returns:
        8位UUID字符串
    """
    return uuid.uuid4().hex[:8]


def validate_css_color(color: str) -> str:
    """验证颜色字符串.

    Args:
        color: CSS 颜色（如 "#ff0000"）

    Returns:
        原颜色字符串

    Raises:
        ValueError: 颜色无法识别
    """
    ImageColor.getrgb(color)
    return color


# ===================
# Logo 图片资源
# ===================


class LogoAsset:
    """Logo 图片资源.

    保存解码后的图片和原始编码字节。图层只读取资源，从不修改它，
    同一个资源可以被多个图层共享。

    Attributes:
        raster: RGBA 图片
        data: 原始编码字节（用于预设导出）
        width: 原始宽度
        height: 原始高度
    """

    def __init__(self, raster: Image.Image, data: bytes) -> None:
        self._raster = raster
        self._data = data

    @property
    def raster(self) -> Image.Image:
        return self._raster

    @property
    def data(self) -> bytes:
        return self._data

    @property
    def width(self) -> int:
        return self._raster.width

    @property
    def height(self) -> int:
        return self._raster.height

    @property
    def aspect_ratio(self) -> float:
        """高宽比（height / width）."""
        return self.height / self.width

    def to_data_uri(self) -> str:
        """将原始字节编码为 data URI."""
        return bytes_to_data_uri(self._data)

    @classmethod
    def from_bytes(cls, data: bytes, source: str = "") -> "LogoAsset":
        """从编码字节创建资源.

        Raises:
            DecodeError: 数据无法解码
        """
        decoded = decode_image(data, source)
        return cls(decoded.raster, data)

    @classmethod
    async def from_bytes_async(cls, data: bytes, source: str = "") -> "LogoAsset":
        """异步解码并创建资源."""
        decoded = await decode_image_async(data, source)
        return cls(decoded.raster, data)


# ===================
# 图层基类
# ===================


class LayerElement(BaseModel):
    """图层元素基类.

    Attributes:
        id: 图层唯一标识符（会话内稳定）
        type: 图层类型
        opacity: 不透明度（0-1）
        position_mode: 坐标模式
        x: X坐标（像素）
        y: Y坐标（像素）
        rel_x: X坐标（参考图宽度的百分比）
        rel_y: Y坐标（参考图高度的百分比）
    """

    id: str = Field(default_factory=generate_layer_id, description="图层唯一ID")
    type: LayerType = Field(description="图层类型")
    opacity: float = Field(
        default=DEFAULT_LAYER_OPACITY,
        ge=0.0,
        le=1.0,
        description="不透明度",
    )
    position_mode: PositionMode = Field(
        default=PositionMode.RELATIVE,
        description="坐标模式",
    )

    x: float = Field(default=0.0, description="X坐标")
    y: float = Field(default=0.0, description="Y坐标")
    rel_x: Optional[float] = Field(default=None, description="相对X坐标（%）")
    rel_y: Optional[float] = Field(default=None, description="相对Y坐标（%）")

    model_config = ConfigDict(validate_assignment=True, use_enum_values=False)

    @property
    def is_relative(self) -> bool:
        """是否为相对坐标模式."""
        return self.position_mode == PositionMode.RELATIVE

    def move_to(self, x: float, y: float) -> None:
        """移动图层像素坐标（不修改相对坐标）."""
        self.x = x
        self.y = y


# ===================
# 边框图层
# ===================


class FrameLayer(LayerElement):
    """矩形边框图层.

    仅描边，不填充内部。rel_width、rel_border_width 为参考图宽度的百分比，
    rel_height 为参考图高度的百分比。

    Example:
        >>> frame = FrameLayer.create()
        >>> frame.width, frame.height
        (300.0, 200.0)
    """

    type: LayerType = Field(default=LayerType.FRAME, frozen=True, description="图层类型")

    width: float = Field(default=DEFAULT_FRAME_GEOMETRY[2], gt=0, description="宽度")
    height: float = Field(default=DEFAULT_FRAME_GEOMETRY[3], gt=0, description="高度")
    border_width: float = Field(
        default=DEFAULT_FRAME_BORDER_WIDTH,
        ge=0,
        description="边框宽度",
    )
    border_color: str = Field(default=DEFAULT_COLOR, description="边框颜色")

    rel_width: Optional[float] = Field(default=None, description="相对宽度（%）")
    rel_height: Optional[float] = Field(default=None, description="相对高度（%）")
    rel_border_width: Optional[float] = Field(default=None, description="相对边框宽度（%）")

    @field_validator("border_color")
    @classmethod
    def validate_color(cls, v: str) -> str:
        """验证颜色值."""
        return validate_css_color(v)

    @property
    def bounds(self) -> tuple[float, float, float, float]:
        """(left, top, right, bottom) 像素边界."""
        return (self.x, self.y, self.x + self.width, self.y + self.height)

    @classmethod
    def create(cls, **overrides: Any) -> "FrameLayer":
        """以默认几何创建边框图层."""
        x, y, width, height = DEFAULT_FRAME_GEOMETRY
        rel_x, rel_y, rel_width, rel_height = DEFAULT_FRAME_RELATIVE
        fields: dict[str, Any] = {
            "x": x,
            "y": y,
            "width": width,
            "height": height,
            "rel_x": rel_x,
            "rel_y": rel_y,
            "rel_width": rel_width,
            "rel_height": rel_height,
            "rel_border_width": DEFAULT_FRAME_REL_BORDER_WIDTH,
        }
        fields.update(overrides)
        return cls(**fields)


# ===================
# Logo 图层
# ===================


class LogoLayer(LayerElement):
    """Logo 图片图层.

    只保存宽度，高度始终由图片原始宽高比推导：height = width * asset.height / asset.width。
    资源尚未解码完成（asset 为 None）时图层处于等待状态，不参与命中测试和合成。

    Attributes:
        width: 宽度（像素）
        rel_width: 相对宽度（参考图宽度的百分比）
        asset: 已解码的图片资源
        source_uri: 待解码的 data URI（从预设恢复时使用）
    """

    type: LayerType = Field(default=LayerType.LOGO, frozen=True, description="图层类型")

    width: float = Field(default=DEFAULT_LOGO_WIDTH, gt=0, description="宽度")
    rel_width: Optional[float] = Field(default=None, description="相对宽度（%）")

    asset: Optional[LogoAsset] = Field(default=None, exclude=True, description="图片资源")
    source_uri: Optional[str] = Field(default=None, exclude=True, repr=False)

    model_config = ConfigDict(
        validate_assignment=True,
        use_enum_values=False,
        arbitrary_types_allowed=True,
    )

    @property
    def is_ready(self) -> bool:
        """图片资源是否已就绪."""
        return self.asset is not None

    @property
    def aspect_ratio(self) -> float:
        """图片高宽比，资源未就绪时为 0."""
        return self.asset.aspect_ratio if self.asset else 0.0

    @property
    def height(self) -> float:
        """由宽度推导的高度."""
        return self.width * self.aspect_ratio

    @classmethod
    def create(cls, asset: LogoAsset, **overrides: Any) -> "LogoLayer":
        """以默认几何创建 Logo 图层."""
        x, y = DEFAULT_LOGO_POSITION
        rel_x, rel_y = DEFAULT_LOGO_RELATIVE
        fields: dict[str, Any] = {
            "x": x,
            "y": y,
            "width": DEFAULT_LOGO_WIDTH,
            "rel_x": rel_x,
            "rel_y": rel_y,
            "rel_width": DEFAULT_LOGO_REL_WIDTH,
            "asset": asset,
        }
        fields.update(overrides)
        return cls(**fields)


# ===================
# 文字图层
# ===================


class TextLayer(LayerElement):
    """文字图层.

    (x, y) 为文字基线左端点。rel_font_size 为参考图宽度的百分比。
    """

    type: LayerType = Field(default=LayerType.TEXT, frozen=True, description="图层类型")

    text: str = Field(default=DEFAULT_TEXT_CONTENT, description="文字内容")
    font_size: float = Field(default=DEFAULT_TEXT_FONT_SIZE, gt=0, description="字号（像素）")
    font_family: str = Field(default=DEFAULT_TEXT_FONT_FAMILY, description="字体名称")
    color: str = Field(default=DEFAULT_COLOR, description="文字颜色")

    rel_font_size: Optional[float] = Field(default=None, description="相对字号（%）")

    @field_validator("color")
    @classmethod
    def validate_color(cls, v: str) -> str:
        """验证颜色值."""
        return validate_css_color(v)

    @classmethod
    def create(cls, **overrides: Any) -> "TextLayer":
        """以默认值创建文字图层."""
        x, y = DEFAULT_TEXT_POSITION
        rel_x, rel_y = DEFAULT_TEXT_RELATIVE
        fields: dict[str, Any] = {
            "x": x,
            "y": y,
            "rel_x": rel_x,
            "rel_y": rel_y,
            "rel_font_size": DEFAULT_TEXT_REL_FONT_SIZE,
        }
        fields.update(overrides)
        return cls(**fields)


AnyLayer = Union[FrameLayer, LogoLayer, TextLayer]


# ===================
# 图层存储
# ===================


class LayerStore:
    """图层存储.

    按类型保存三组有序图层。组内顺序即插入顺序，决定同类图层的绘制顺序；
    跨类型绘制顺序固定为 边框 → Logo → 文字（从后到前）。交互不会改变顺序。

    Example:
        >>> store = LayerStore()
        >>> frame = store.add(FrameLayer.create())
        >>> store.layer_count
        1
    """

    def __init__(self) -> None:
        self.frames: list[FrameLayer] = []
        self.logos: list[LogoLayer] = []
        self.texts: list[TextLayer] = []

    def __repr__(self) -> str:
        return (
            f"LayerStore(frames={len(self.frames)}, logos={len(self.logos)}, "
            f"texts={len(self.texts)})"
        )

    @property
    def layer_count(self) -> int:
        """三类图层总数."""
        return len(self.frames) + len(self.logos) + len(self.texts)

    @property
    def is_empty(self) -> bool:
        return self.layer_count == 0

    def iter_all(self) -> Iterator[AnyLayer]:
        """按绘制顺序遍历所有图层."""
        yield from self.frames
        yield from self.logos
        yield from self.texts

    def ready_logos(self) -> list[LogoLayer]:
        """资源已就绪的 Logo 图层."""
        return [logo for logo in self.logos if logo.is_ready]

    def _sequence_for(self, layer: AnyLayer) -> list:
        if isinstance(layer, FrameLayer):
            return self.frames
        if isinstance(layer, LogoLayer):
            return self.logos
        if isinstance(layer, TextLayer):
            return self.texts
        raise TypeError(f"未知图层类型: {type(layer)}")

    def add(self, layer: AnyLayer) -> AnyLayer:
        """追加图层到对应类型序列末尾.

        Raises:
            ValidationError: 图层ID已存在
        """
        if self.find(layer.id) is not None:
            raise ValidationError(f"图层ID重复: {layer.id}")
        self._sequence_for(layer).append(layer)
        return layer

    def add_frame(self, **overrides: Any) -> FrameLayer:
        """以默认几何添加边框."""
        return self.add(FrameLayer.create(**overrides))

    def add_logo(self, asset: LogoAsset, **overrides: Any) -> LogoLayer:
        """以已解码的资源添加 Logo."""
        return self.add(LogoLayer.create(asset, **overrides))

    def add_text(self, **overrides: Any) -> TextLayer:
        return self.add(TextLayer.create(**overrides))

    def find(self, layer_id: str) -> Optional[AnyLayer]:
        """根据ID查找图层，不存在返回 None."""
        for layer in self.iter_all():
            if layer.id == layer_id:
                return layer
        return None

    def get(self, layer_id: str) -> AnyLayer:
        """根据ID获取图层.

        Raises:
            LayerNotFoundError: 图层不存在
        """
        layer = self.find(layer_id)
        if layer is None:
            raise LayerNotFoundError(layer_id)
        return layer

    def update(self, layer_id: str, **changes: Any) -> AnyLayer:
        """原地更新图层字段.

        先在副本上校验全部修改，全部通过后才写回，失败时图层保持不变。

        Args:
            layer_id: 图层ID
            **changes: 字段修改

        Returns:
            更新后的图层

        Raises:
            LayerNotFoundError: 图层不存在
            ValidationError: 字段不存在或值无效
        """
        layer = self.get(layer_id)
        unknown = [name for name in changes if name not in type(layer).model_fields]
        if unknown or "id" in changes or "type" in changes:
            raise ValidationError(f"不可修改的字段: {', '.join(unknown or ['id/type'])}")

        candidate = layer.model_copy()
        try:
            for name, value in changes.items():
                setattr(candidate, name, value)
        except PydanticValidationError as e:
            raise ValidationError(f"图层属性无效: {e.errors()[0]['msg']}") from e

        for name in changes:
            setattr(layer, name, getattr(candidate, name))
        return layer

    def remove(self, layer_id: str) -> AnyLayer:
        """删除图层.

        Raises:
            LayerNotFoundError: 图层不存在
        """
        layer = self.get(layer_id)
        self._sequence_for(layer).remove(layer)
        return layer

    def clear(self) -> None:
        """清空所有图层."""
        self.frames.clear()
        self.logos.clear()
        self.texts.clear()

    def snapshot(self) -> "LayerStore":
        """复制当前图层，Logo 资源只读共享."""
        copied = LayerStore()
        copied.frames = [layer.model_copy() for layer in self.frames]
        copied.logos = [layer.model_copy() for layer in self.logos]
        copied.texts = [layer.model_copy() for layer in self.texts]
        return copied

    def replace(self, other: "LayerStore") -> None:
        """用另一个存储的内容整体替换当前内容（不合并）."""
        self.frames = list(other.frames)
        self.logos = list(other.logos)
        self.texts = list(other.texts)
