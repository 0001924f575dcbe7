"""预览驱动.

以当前显示的参考图为准解析图层并合成预览，额外绘制仅用于屏幕显示的
选中框和控制点标记。这些装饰从不进入导出结果。

每次渲染:
    1. 参考图变化或有新加入的相对模式图层时，把相对坐标落实为像素值
    2. 以像素值为准同步所有图层的相对坐标
    3. 解析、合成，可选绘制装饰
"""

from __future__ import annotations

from typing import Optional

from PIL import Image, ImageDraw

from watermark_forge.core.compositor import Compositor
from watermark_forge.core.fonts import measure_text_width
from watermark_forge.core.geometry import (
    ResolvedLayers,
    materialize_relative,
    resolve_store,
    sync_relative_from_absolute,
)
from watermark_forge.core.interaction import HandlePosition, TextMeasurer
from watermark_forge.models.layers import LayerStore
from watermark_forge.utils.constants import (
    HANDLE_MARKER_COLOR,
    HANDLE_MARKER_SIZE,
    SELECTION_COLOR,
    SELECTION_WIDTH,
)
from watermark_forge.utils.image_utils import decode_image_async
from watermark_forge.utils.logger import setup_logger

logger = setup_logger(__name__)


def handle_centers(
    x: float, y: float, width: float, height: float
) -> dict[HandlePosition, tuple[float, float]]:
    """8 个控制点的中心坐标（四角与四边中点）."""
    right, bottom = x + width, y + height
    cx, cy = x + width / 2, y + height / 2
    return {
        HandlePosition.NW: (x, y),
        HandlePosition.NE: (right, y),
        HandlePosition.SW: (x, bottom),
        HandlePosition.SE: (right, bottom),
        HandlePosition.N: (cx, y),
        HandlePosition.S: (cx, bottom),
        HandlePosition.W: (x, cy),
        HandlePosition.E: (right, cy),
    }


class PreviewDriver:
    """预览驱动.

    Attributes:
        store: 图层存储
        reference: 当前参考图

    Example:
        >>> driver = PreviewDriver(store)
        >>> driver.set_reference(image)
        >>> preview = driver.render(selected_id=frame.id)
    """

    def __init__(
        self,
        store: LayerStore,
        compositor: Optional[Compositor] = None,
        marker_size: int = HANDLE_MARKER_SIZE,
        measure_text: TextMeasurer = measure_text_width,
    ) -> None:
        self._store = store
        self._compositor = compositor or Compositor()
        self._marker_size = marker_size
        self._measure_text = measure_text

        self._reference: Optional[Image.Image] = None
        self._generation = 0
        self._pending_ids: set[str] = set()
        self._materialize_all = False
        self._last_frame: Optional[Image.Image] = None

    # ========================
    # 属性
    # ========================

    @property
    def store(self) -> LayerStore:
        return self._store

    @store.setter
    def store(self, store: LayerStore) -> None:
        self._store = store
        self.mark_all_pending()

    @property
    def reference(self) -> Optional[Image.Image]:
        return self._reference

    @property
    def reference_size(self) -> Optional[tuple[int, int]]:
        """参考图尺寸，未设置时为 None."""
        return self._reference.size if self._reference is not None else None

    @property
    def last_frame(self) -> Optional[Image.Image]:
        """最近一次渲染结果."""
        return self._last_frame

    # ========================
    # 参考图
    # ========================

    def set_reference(self, raster: Image.Image) -> None:
        """设置参考图，相对模式图层将在下次渲染时按新尺寸落实."""
        self._generation += 1
        self._reference = raster
        self._materialize_all = True
        logger.debug(f"参考图已更新: {raster.size}")

    async def load_reference(self, data: bytes, source: str = "") -> bool:
        """异步解码并设置参考图.

        解码期间若有更新的请求，本次结果被丢弃。

        Returns:
            是否采用了本次结果

        Raises:
            DecodeError: 图片无法解码
        """
        self._generation += 1
        generation = self._generation

        decoded = await decode_image_async(data, source)
        if generation != self._generation:
            logger.debug(f"参考图解码结果已过期，丢弃: {source}")
            return False

        self.set_reference(decoded.raster)
        return True

    # ========================
    # 待落实图层
    # ========================

    def mark_pending(self, layer_id: str) -> None:
        """标记图层在下次渲染时按参考图落实相对坐标."""
        self._pending_ids.add(layer_id)

    def mark_all_pending(self) -> None:
        self._materialize_all = True

    # ========================
    # 渲染
    # ========================

    def prepare(self) -> Optional[ResolvedLayers]:
        """执行落实、同步和解析.

        Returns:
            解析结果，没有参考图时返回 None
        """
        if self._reference is None:
            return None

        ref_width, ref_height = self._reference.size
        if self._materialize_all:
            materialize_relative(self._store, ref_width, ref_height)
        elif self._pending_ids:
            pending = [l for l in self._store.iter_all() if l.id in self._pending_ids]
            materialize_relative(pending, ref_width, ref_height)
        self._materialize_all = False
        self._pending_ids.clear()

        sync_relative_from_absolute(self._store, ref_width, ref_height)
        return resolve_store(self._store, ref_width, ref_height)

    def render(self, selected_id: Optional[str] = None, decorate: bool = True) -> Optional[Image.Image]:
        """渲染预览.

        Args:
            selected_id: 选中图层ID（绘制选中框）
            decorate: 是否绘制控制点和选中框

        Returns:
            预览图，没有参考图时返回 None
        """
        resolved = self.prepare()
        if resolved is None:
            return None

        image = self._compositor.composite(self._reference, resolved)
        if decorate:
            image = self.decorate(image, resolved, selected_id)

        self._last_frame = image
        return image

    def decorate(
        self,
        image: Image.Image,
        resolved: ResolvedLayers,
        selected_id: Optional[str] = None,
    ) -> Image.Image:
        """在合成结果的副本上绘制选中框和边框控制点."""
        result = image.copy()
        draw = ImageDraw.Draw(result)

        bounds = self._selection_bounds(resolved, selected_id) if selected_id else None
        if bounds is not None:
            draw.rectangle(
                tuple(round(v) for v in bounds),
                outline=SELECTION_COLOR,
                width=SELECTION_WIDTH,
            )

        half = self._marker_size / 2
        for frame in resolved.frames:
            for cx, cy in handle_centers(frame.x, frame.y, frame.width, frame.height).values():
                draw.rectangle(
                    (
                        round(cx - half),
                        round(cy - half),
                        round(cx + half) - 1,
                        round(cy + half) - 1,
                    ),
                    fill=HANDLE_MARKER_COLOR,
                )

        return result

    def _selection_bounds(
        self, resolved: ResolvedLayers, layer_id: str
    ) -> Optional[tuple[float, float, float, float]]:
        for frame in resolved.frames:
            if frame.layer_id == layer_id:
                return (frame.x, frame.y, frame.x + frame.width, frame.y + frame.height)
        for logo in resolved.logos:
            if logo.layer_id == layer_id:
                return (logo.x, logo.y, logo.x + logo.width, logo.y + logo.height)
        for text in resolved.texts:
            if text.layer_id == layer_id:
                width = self._measure_text(text.text, text.font_family, text.font_size)
                return (text.x, text.y - text.font_size, text.x + width, text.y)
        return None
