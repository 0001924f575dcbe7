"""命中测试与指针状态机.

根据指针坐标判断其下方的图层（包括边框的缩放控制点），驱动拖拽移动和拖拽缩放。

状态:
    - 空闲（session 为 None）
    - 拖拽中（session 记录目标图层、交互类型、控制点、起点和冻结的初始几何）

命中顺序（先命中者胜）:
    1. 边框，按插入顺序倒序（最上层优先）；每个边框先测 8 个控制点，再测矩形区域
    2. Logo，按插入顺序倒序，矩形包围盒
    3. 文字，按插入顺序倒序，包围盒 = 测量宽度 × 字号，位于基线左端点的右上方

控制点区域允许超出边框矩形，因此缩放优先于移动。
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from watermark_forge.core.fonts import measure_text_width
from watermark_forge.models.layers import (
    AnyLayer,
    FrameLayer,
    LayerStore,
    LayerType,
    LogoLayer,
    TextLayer,
)
from watermark_forge.utils.constants import (
    DEFAULT_CURSOR,
    HANDLE_TOLERANCE,
    MIN_LAYER_SIZE,
)
from watermark_forge.utils.exceptions import GeometryRejected
from watermark_forge.utils.logger import setup_logger

logger = setup_logger(__name__)

# (text, font_family, font_size) -> 宽度
TextMeasurer = Callable[[str, str, float], float]


# ===================
# 枚举与常量
# ===================


class HandlePosition(str, Enum):
    """控制点位置枚举."""

    NW = "nw"
    NE = "ne"
    SW = "sw"
    SE = "se"
    N = "n"
    S = "s"
    E = "e"
    W = "w"


class DragKind(str, Enum):
    """拖拽类型."""

    MOVE = "move"
    RESIZE = "resize"


# 命中测试顺序：四角，然后左右边，最后上下边
HANDLE_TEST_ORDER = (
    HandlePosition.NW,
    HandlePosition.NE,
    HandlePosition.SW,
    HandlePosition.SE,
    HandlePosition.W,
    HandlePosition.E,
    HandlePosition.N,
    HandlePosition.S,
)

# 控制点光标提示
HANDLE_CURSORS = {handle: f"{handle.value}-resize" for handle in HandlePosition}

# 各控制点所移动的边
_LEFT_HANDLES = {HandlePosition.NW, HandlePosition.W, HandlePosition.SW}
_RIGHT_HANDLES = {HandlePosition.NE, HandlePosition.E, HandlePosition.SE}
_TOP_HANDLES = {HandlePosition.NW, HandlePosition.N, HandlePosition.NE}
_BOTTOM_HANDLES = {HandlePosition.SW, HandlePosition.S, HandlePosition.SE}


# ===================
# 数据结构
# ===================


@dataclass(frozen=True)
class FrameGeometry:
    """边框像素几何快照."""

    x: float
    y: float
    width: float
    height: float

    @classmethod
    def of(cls, frame: FrameLayer) -> "FrameGeometry":
        return cls(frame.x, frame.y, frame.width, frame.height)


@dataclass(frozen=True)
class HitResult:
    """命中测试结果."""

    layer: AnyLayer
    kind: DragKind
    handle: Optional[HandlePosition] = None


@dataclass(frozen=True)
class DragSession:
    """进行中的拖拽会话.

    Attributes:
        layer_id: 目标图层ID
        layer_type: 目标图层类型
        kind: 移动或缩放
        handle: 缩放控制点（仅缩放）
        start_x: 按下时的指针X
        start_y: 按下时的指针Y
        offset_x: 指针相对图层原点的X偏移（仅移动）
        offset_y: 指针相对图层原点的Y偏移（仅移动）
        snapshot: 按下时的边框几何（仅缩放）
    """

    layer_id: str
    layer_type: LayerType
    kind: DragKind
    start_x: float
    start_y: float
    offset_x: float = 0.0
    offset_y: float = 0.0
    handle: Optional[HandlePosition] = None
    snapshot: Optional[FrameGeometry] = None


# ===================
# 纯函数
# ===================


def _within(value: float, center: float, tolerance: float) -> bool:
    return center - tolerance <= value <= center + tolerance


def find_resize_handle(
    frame: FrameLayer,
    x: float,
    y: float,
    tolerance: float = HANDLE_TOLERANCE,
) -> Optional[HandlePosition]:
    """检测指针处的缩放控制点.

    角点区域为以角点为中心、半边长为 tolerance 的正方形；边区域沿整条边延伸，
    垂直方向同样为 ±tolerance。

    Args:
        frame: 边框图层
        x: 指针X
        y: 指针Y
        tolerance: 命中容差

    Returns:
        控制点，未命中返回 None
    """
    left, top = frame.x, frame.y
    right, bottom = frame.x + frame.width, frame.y + frame.height

    for handle in HANDLE_TEST_ORDER:
        if handle == HandlePosition.NW:
            hit = _within(x, left, tolerance) and _within(y, top, tolerance)
        elif handle == HandlePosition.NE:
            hit = _within(x, right, tolerance) and _within(y, top, tolerance)
        elif handle == HandlePosition.SW:
            hit = _within(x, left, tolerance) and _within(y, bottom, tolerance)
        elif handle == HandlePosition.SE:
            hit = _within(x, right, tolerance) and _within(y, bottom, tolerance)
        elif handle == HandlePosition.W:
            hit = _within(x, left, tolerance) and top <= y <= bottom
        elif handle == HandlePosition.E:
            hit = _within(x, right, tolerance) and top <= y <= bottom
        elif handle == HandlePosition.N:
            hit = _within(y, top, tolerance) and left <= x <= right
        else:
            hit = _within(y, bottom, tolerance) and left <= x <= right
        if hit:
            return handle
    return None


def compute_resize(
    snapshot: FrameGeometry,
    handle: HandlePosition,
    dx: float,
    dy: float,
    min_size: float = MIN_LAYER_SIZE,
) -> FrameGeometry:
    """根据控制点和指针位移计算新的边框几何.

    始终基于按下时的快照计算，不在上一帧结果上累加。
    不接触控制点的对边保持不动。

    Args:
        snapshot: 初始几何
        handle: 控制点
        dx: 指针X位移
        dy: 指针Y位移
        min_size: 最小尺寸（宽高必须严格大于该值）

    Returns:
        新几何

    Raises:
        GeometryRejected: 宽或高不大于 min_size
    """
    x, y, width, height = snapshot.x, snapshot.y, snapshot.width, snapshot.height

    if handle in _LEFT_HANDLES:
        x += dx
        width -= dx
    elif handle in _RIGHT_HANDLES:
        width += dx

    if handle in _TOP_HANDLES:
        y += dy
        height -= dy
    elif handle in _BOTTOM_HANDLES:
        height += dy

    if width <= min_size or height <= min_size:
        raise GeometryRejected(width, height, min_size)
    return FrameGeometry(x, y, width, height)


def text_bounds(
    layer: TextLayer,
    measure: TextMeasurer = measure_text_width,
) -> tuple[float, float, float, float]:
    """文字图层的包围盒 (left, top, right, bottom).

    文字以基线左端点为锚点绘制，包围盒宽为测量宽度、高为字号，位于锚点右上方。
    """
    width = measure(layer.text, layer.font_family, layer.font_size)
    return (layer.x, layer.y - layer.font_size, layer.x + width, layer.y)


def _contains(bounds: tuple[float, float, float, float], x: float, y: float) -> bool:
    left, top, right, bottom = bounds
    return left <= x <= right and top <= y <= bottom


# ===================
# 指针状态机
# ===================


class PointerStateMachine:
    """指针状态机.

    同一时刻最多只有一个拖拽会话；会话存在期间其他图层不会响应指针。
    移动和缩放直接写入图层的像素字段，相对字段保持不变，直到下一次同步。

    Example:
        >>> machine = PointerStateMachine(store)
        >>> machine.pointer_down(60, 60)
        >>> machine.pointer_move(80, 90)
        >>> machine.pointer_up()
    """

    def __init__(
        self,
        store: LayerStore,
        measure_text: TextMeasurer = measure_text_width,
        handle_tolerance: float = HANDLE_TOLERANCE,
        min_size: float = MIN_LAYER_SIZE,
    ) -> None:
        """初始化状态机.

        Args:
            store: 图层存储
            measure_text: 文字宽度测量函数
            handle_tolerance: 控制点命中容差
            min_size: 缩放最小尺寸
        """
        self._store = store
        self._measure_text = measure_text
        self._tolerance = handle_tolerance
        self._min_size = min_size

        self._session: Optional[DragSession] = None
        self._cursor = DEFAULT_CURSOR
        self._selected_id: Optional[str] = None

    # ========================
    # 属性
    # ========================

    @property
    def session(self) -> Optional[DragSession]:
        """当前拖拽会话."""
        return self._session

    @property
    def is_dragging(self) -> bool:
        return self._session is not None

    @property
    def cursor(self) -> str:
        """当前光标提示."""
        return self._cursor

    @property
    def selected_id(self) -> Optional[str]:
        """最近一次按下命中的图层ID."""
        if self._selected_id and self._store.find(self._selected_id) is None:
            self._selected_id = None
        return self._selected_id

    # ========================
    # 命中测试
    # ========================

    def hit_test(self, x: float, y: float) -> Optional[HitResult]:
        """测试指针下方的图层.

        Args:
            x: 指针X（图片坐标）
            y: 指针Y（图片坐标）

        Returns:
            命中结果，未命中返回 None
        """
        for frame in reversed(self._store.frames):
            handle = find_resize_handle(frame, x, y, self._tolerance)
            if handle:
                return HitResult(frame, DragKind.RESIZE, handle)
            if _contains(frame.bounds, x, y):
                return HitResult(frame, DragKind.MOVE)

        for logo in reversed(self._store.logos):
            if not logo.is_ready:
                continue
            if _contains((logo.x, logo.y, logo.x + logo.width, logo.y + logo.height), x, y):
                return HitResult(logo, DragKind.MOVE)

        for text in reversed(self._store.texts):
            if _contains(text_bounds(text, self._measure_text), x, y):
                return HitResult(text, DragKind.MOVE)

        return None

    def cursor_at(self, x: float, y: float) -> str:
        """计算指针处的光标提示（仅考虑边框控制点）."""
        for frame in reversed(self._store.frames):
            handle = find_resize_handle(frame, x, y, self._tolerance)
            if handle:
                return HANDLE_CURSORS[handle]
        return DEFAULT_CURSOR

    # ========================
    # 指针事件
    # ========================

    def pointer_down(self, x: float, y: float) -> Optional[DragSession]:
        """指针按下.

        空闲时执行命中测试，命中则开始拖拽会话；已在拖拽中时忽略。

        Returns:
            新的拖拽会话，未命中返回 None
        """
        if self._session is not None:
            return None

        hit = self.hit_test(x, y)
        if hit is None:
            self._selected_id = None
            return None

        layer = hit.layer
        if hit.kind == DragKind.RESIZE:
            self._session = DragSession(
                layer_id=layer.id,
                layer_type=layer.type,
                kind=DragKind.RESIZE,
                start_x=x,
                start_y=y,
                handle=hit.handle,
                snapshot=FrameGeometry.of(layer),
            )
        else:
            self._session = DragSession(
                layer_id=layer.id,
                layer_type=layer.type,
                kind=DragKind.MOVE,
                start_x=x,
                start_y=y,
                offset_x=x - layer.x,
                offset_y=y - layer.y,
            )

        self._selected_id = layer.id
        logger.debug(
            f"开始{hit.kind.value}: {layer.type.value} {layer.id}"
            + (f" ({hit.handle.value})" if hit.handle else "")
        )
        return self._session

    def pointer_move(self, x: float, y: float) -> bool:
        """指针移动.

        空闲时只更新光标提示；拖拽中更新目标图层几何。

        Returns:
            是否修改了图层几何
        """
        session = self._session
        if session is None:
            self._cursor = self.cursor_at(x, y)
            return False

        layer = self._store.find(session.layer_id)
        if layer is None:
            logger.debug(f"拖拽目标已删除: {session.layer_id}")
            self._session = None
            return False

        if session.kind == DragKind.MOVE:
            layer.move_to(x - session.offset_x, y - session.offset_y)
            return True

        return self._apply_resize(layer, session, x, y)

    def _apply_resize(self, layer: AnyLayer, session: DragSession, x: float, y: float) -> bool:
        if not isinstance(layer, FrameLayer) or session.snapshot is None or session.handle is None:
            return False

        try:
            geometry = compute_resize(
                session.snapshot,
                session.handle,
                x - session.start_x,
                y - session.start_y,
                self._min_size,
            )
        except GeometryRejected:
            # 保留上一次的几何，会话继续
            return False

        layer.move_to(geometry.x, geometry.y)
        layer.width = geometry.width
        layer.height = geometry.height
        return True

    def pointer_up(self) -> None:
        """指针抬起，结束会话（修改已逐帧生效，无需提交）."""
        if self._session is not None:
            logger.debug(f"结束拖拽: {self._session.layer_id}")
        self._session = None

    def pointer_leave(self) -> None:
        """指针离开绘制区域，结束会话."""
        self.pointer_up()
        self._cursor = DEFAULT_CURSOR

    def reset(self) -> None:
        """清空会话和选中状态（图层存储被替换时调用）."""
        self._session = None
        self._selected_id = None
        self._cursor = DEFAULT_CURSOR
