"""几何解析模块.

在相对坐标（参考图尺寸的百分比）和像素坐标之间转换图层几何。

- resolve_absolute: 纯函数，按图层的 position_mode 计算目标图上的像素几何
- sync_relative_from_absolute: 以当前像素值为准，反算并写回所有图层的相对坐标
- materialize_relative: 以相对坐标为准，把解析结果写回相对模式图层的像素值

预览和导出都只消费 resolve_* 的结果，保证两者一致。
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Optional, Union

from PIL import Image

from watermark_forge.models.layers import (
    AnyLayer,
    FrameLayer,
    LayerStore,
    LogoLayer,
    TextLayer,
)
from watermark_forge.utils.logger import setup_logger

logger = setup_logger(__name__)


# ===================
# 解析结果
# ===================


@dataclass(frozen=True)
class ResolvedFrame:
    """目标图上的边框像素几何."""

    layer_id: str
    x: float
    y: float
    width: float
    height: float
    border_width: float
    border_color: str
    opacity: float


@dataclass(frozen=True)
class ResolvedLogo:
    """目标图上的 Logo 像素几何."""

    layer_id: str
    x: float
    y: float
    width: float
    height: float
    opacity: float
    raster: Optional[Image.Image] = field(default=None, compare=False, repr=False)


@dataclass(frozen=True)
class ResolvedText:
    """目标图上的文字像素几何，(x, y) 为基线左端点."""

    layer_id: str
    x: float
    y: float
    font_size: float
    font_family: str
    color: str
    text: str
    opacity: float


ResolvedLayer = Union[ResolvedFrame, ResolvedLogo, ResolvedText]


@dataclass(frozen=True)
class ResolvedLayers:
    """按绘制顺序排列的解析结果集合."""

    frames: tuple[ResolvedFrame, ...] = ()
    logos: tuple[ResolvedLogo, ...] = ()
    texts: tuple[ResolvedText, ...] = ()

    @property
    def count(self) -> int:
        return len(self.frames) + len(self.logos) + len(self.texts)


# ===================
# 解析
# ===================


def _check_reference(ref_width: float, ref_height: float) -> None:
    if ref_width <= 0 or ref_height <= 0:
        raise ValueError(f"参考图尺寸无效: {ref_width}x{ref_height}")


def _pick(relative: bool, rel_value: Optional[float], ref: float, pixel: float) -> float:
    """相对模式且相对值存在时按百分比计算，否则使用像素值."""
    if relative and rel_value is not None:
        return rel_value / 100 * ref
    return pixel


def resolve_frame(layer: FrameLayer, ref_width: float, ref_height: float) -> ResolvedFrame:
    """解析边框图层."""
    rel = layer.is_relative
    return ResolvedFrame(
        layer_id=layer.id,
        x=_pick(rel, layer.rel_x, ref_width, layer.x),
        y=_pick(rel, layer.rel_y, ref_height, layer.y),
        width=_pick(rel, layer.rel_width, ref_width, layer.width),
        height=_pick(rel, layer.rel_height, ref_height, layer.height),
        border_width=_pick(rel, layer.rel_border_width, ref_width, layer.border_width),
        border_color=layer.border_color,
        opacity=layer.opacity,
    )


def resolve_logo(layer: LogoLayer, ref_width: float, ref_height: float) -> ResolvedLogo:
    """解析 Logo 图层，高度始终由宽度和图片宽高比推导."""
    rel = layer.is_relative
    width = _pick(rel, layer.rel_width, ref_width, layer.width)
    return ResolvedLogo(
        layer_id=layer.id,
        x=_pick(rel, layer.rel_x, ref_width, layer.x),
        y=_pick(rel, layer.rel_y, ref_height, layer.y),
        width=width,
        height=width * layer.aspect_ratio,
        opacity=layer.opacity,
        raster=layer.asset.raster if layer.asset else None,
    )


def resolve_text(layer: TextLayer, ref_width: float, ref_height: float) -> ResolvedText:
    """解析文字图层，字号相对于参考图宽度."""
    rel = layer.is_relative
    return ResolvedText(
        layer_id=layer.id,
        x=_pick(rel, layer.rel_x, ref_width, layer.x),
        y=_pick(rel, layer.rel_y, ref_height, layer.y),
        font_size=_pick(rel, layer.rel_font_size, ref_width, layer.font_size),
        font_family=layer.font_family,
        color=layer.color,
        text=layer.text,
        opacity=layer.opacity,
    )


def resolve_absolute(layer: AnyLayer, ref_width: float, ref_height: float) -> ResolvedLayer:
    """计算图层在指定尺寸目标图上的像素几何.

    绝对模式直接返回像素值；相对模式按百分比换算。纯函数，相同输入得到相同输出。

    Args:
        layer: 图层
        ref_width: 目标图宽度
        ref_height: 目标图高度

    Returns:
        解析后的像素几何

    Raises:
        ValueError: 目标尺寸无效
        TypeError: 未知图层类型
    """
    _check_reference(ref_width, ref_height)
    if isinstance(layer, FrameLayer):
        return resolve_frame(layer, ref_width, ref_height)
    if isinstance(layer, LogoLayer):
        return resolve_logo(layer, ref_width, ref_height)
    if isinstance(layer, TextLayer):
        return resolve_text(layer, ref_width, ref_height)
    raise TypeError(f"未知图层类型: {type(layer)}")


def resolve_store(store: LayerStore, ref_width: float, ref_height: float) -> ResolvedLayers:
    """解析存储中所有可绘制图层.

    资源尚未就绪的 Logo 不会出现在结果中。
    """
    _check_reference(ref_width, ref_height)
    return ResolvedLayers(
        frames=tuple(resolve_frame(f, ref_width, ref_height) for f in store.frames),
        logos=tuple(resolve_logo(l, ref_width, ref_height) for l in store.ready_logos()),
        texts=tuple(resolve_text(t, ref_width, ref_height) for t in store.texts),
    )


# ===================
# 同步
# ===================


def _sync_layer(layer: AnyLayer, ref_width: float, ref_height: float) -> None:
    layer.rel_x = layer.x / ref_width * 100
    layer.rel_y = layer.y / ref_height * 100
    if isinstance(layer, FrameLayer):
        layer.rel_width = layer.width / ref_width * 100
        layer.rel_height = layer.height / ref_height * 100
        layer.rel_border_width = layer.border_width / ref_width * 100
    elif isinstance(layer, LogoLayer):
        layer.rel_width = layer.width / ref_width * 100
    elif isinstance(layer, TextLayer):
        layer.rel_font_size = layer.font_size / ref_width * 100


def sync_relative_from_absolute(
    layers: Union[LayerStore, Iterable[AnyLayer]],
    ref_width: float,
    ref_height: float,
) -> None:
    """以像素值为准重算所有图层的相对坐标.

    不区分坐标模式，对每个图层都执行。幂等：重复调用结果不变。

    Args:
        layers: 图层存储或图层序列
        ref_width: 参考图宽度
        ref_height: 参考图高度
    """
    _check_reference(ref_width, ref_height)
    items = layers.iter_all() if isinstance(layers, LayerStore) else layers
    count = 0
    for layer in items:
        _sync_layer(layer, ref_width, ref_height)
        count += 1
    logger.debug(f"同步相对坐标: {count} 个图层, 参考尺寸 {ref_width}x{ref_height}")


def _has_valid_size(resolved: ResolvedLayer) -> bool:
    if isinstance(resolved, ResolvedFrame):
        return resolved.width > 0 and resolved.height > 0 and resolved.border_width >= 0
    if isinstance(resolved, ResolvedLogo):
        return resolved.width > 0
    return resolved.font_size > 0


def materialize_relative(
    layers: Union[LayerStore, Iterable[AnyLayer]],
    ref_width: float,
    ref_height: float,
) -> None:
    """把相对模式图层的解析结果写回像素字段.

    绝对模式图层不受影响。解析出的尺寸无效（非正数）时保留原像素值。

    Args:
        layers: 图层存储或图层序列
        ref_width: 参考图宽度
        ref_height: 参考图高度
    """
    _check_reference(ref_width, ref_height)
    items = layers.iter_all() if isinstance(layers, LayerStore) else layers
    for layer in items:
        if not layer.is_relative:
            continue
        resolved = resolve_absolute(layer, ref_width, ref_height)
        if not _has_valid_size(resolved):
            logger.warning(f"图层 {layer.id} 相对尺寸无效，保留像素值")
            continue
        if isinstance(resolved, ResolvedFrame):
            layer.width = resolved.width
            layer.height = resolved.height
            layer.border_width = resolved.border_width
        elif isinstance(resolved, ResolvedLogo):
            layer.width = resolved.width
        else:
            layer.font_size = resolved.font_size
        layer.move_to(resolved.x, resolved.y)
