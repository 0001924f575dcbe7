"""预览画布组件.

显示带装饰的预览图，把鼠标事件换算为图片坐标后转发给编辑器的指针状态机，
并按状态机给出的光标提示切换鼠标样式。

Features:
    - 按比例缩放并居中显示预览
    - 组件坐标与图片坐标互相换算
    - 拖拽移动与控制点缩放
    - 控制点光标反馈
"""

from __future__ import annotations

from typing import Optional

from PIL import Image
from PyQt6.QtCore import QEvent, QPointF, QRectF, Qt, pyqtSignal
from PyQt6.QtGui import QColor, QCursor, QImage, QMouseEvent, QPainter, QPaintEvent
from PyQt6.QtWidgets import QSizePolicy, QWidget

from watermark_forge.core.editor import EditorController
from watermark_forge.utils.logger import setup_logger

logger = setup_logger(__name__)


# ===================
# 常量定义
# ===================

# 光标提示到 Qt 光标的映射
CURSOR_SHAPES = {
    "nw-resize": Qt.CursorShape.SizeFDiagCursor,
    "se-resize": Qt.CursorShape.SizeFDiagCursor,
    "ne-resize": Qt.CursorShape.SizeBDiagCursor,
    "sw-resize": Qt.CursorShape.SizeBDiagCursor,
    "n-resize": Qt.CursorShape.SizeVerCursor,
    "s-resize": Qt.CursorShape.SizeVerCursor,
    "e-resize": Qt.CursorShape.SizeHorCursor,
    "w-resize": Qt.CursorShape.SizeHorCursor,
    "grab": Qt.CursorShape.OpenHandCursor,
}

CANVAS_BACKGROUND = "#1a1a1a"


def pil_to_qimage(image: Image.Image) -> QImage:
    """把 PIL 图片转换为 QImage（数据已复制）."""
    rgba = image if image.mode == "RGBA" else image.convert("RGBA")
    data = rgba.tobytes("raw", "RGBA")
    qimage = QImage(data, rgba.width, rgba.height, rgba.width * 4, QImage.Format.Format_RGBA8888)
    return qimage.copy()


class PreviewCanvas(QWidget):
    """预览画布.

    Signals:
        layers_changed: 拖拽修改了图层几何
        selection_changed: 选中图层变化 (layer_id 或 None)

    Example:
        >>> canvas = PreviewCanvas(editor)
        >>> canvas.refresh()
    """

    layers_changed = pyqtSignal()
    selection_changed = pyqtSignal(object)

    def __init__(self, editor: EditorController, parent: Optional[QWidget] = None) -> None:
        """初始化画布.

        Args:
            editor: 编辑器控制器
            parent: 父组件
        """
        super().__init__(parent)
        self._editor = editor
        self._qimage: Optional[QImage] = None
        self._image_size: tuple[int, int] = (0, 0)
        self._scale = 1.0
        self._offset = QPointF(0, 0)

        self.setMouseTracking(True)
        self.setMinimumSize(320, 240)
        self.setSizePolicy(QSizePolicy.Policy.Expanding, QSizePolicy.Policy.Expanding)
        self.setCursor(QCursor(CURSOR_SHAPES["grab"]))

    # ========================
    # 属性
    # ========================

    @property
    def scale(self) -> float:
        """图片到组件的缩放比例."""
        return self._scale

    @property
    def has_image(self) -> bool:
        return self._qimage is not None

    # ========================
    # 渲染
    # ========================

    def refresh(self) -> None:
        """重新渲染预览并重绘."""
        image = self._editor.render()
        if image is None:
            self._qimage = None
            self._image_size = (0, 0)
        else:
            self._qimage = pil_to_qimage(image)
            self._image_size = image.size
        self._update_transform()
        self.update()

    def _update_transform(self) -> None:
        width, height = self._image_size
        if width <= 0 or height <= 0:
            self._scale = 1.0
            self._offset = QPointF(0, 0)
            return
        self._scale = min(self.width() / width, self.height() / height)
        self._offset = QPointF(
            (self.width() - width * self._scale) / 2,
            (self.height() - height * self._scale) / 2,
        )

    def widget_to_image(self, pos: QPointF) -> tuple[float, float]:
        """组件坐标换算为图片坐标."""
        scale = self._scale or 1.0
        return ((pos.x() - self._offset.x()) / scale, (pos.y() - self._offset.y()) / scale)

    def image_to_widget(self, x: float, y: float) -> QPointF:
        """图片坐标换算为组件坐标."""
        return QPointF(x * self._scale + self._offset.x(), y * self._scale + self._offset.y())

    def resizeEvent(self, event) -> None:
        self._update_transform()
        super().resizeEvent(event)

    def paintEvent(self, event: QPaintEvent) -> None:
        painter = QPainter(self)
        painter.fillRect(self.rect(), QColor(CANVAS_BACKGROUND))
        if self._qimage is not None:
            painter.setRenderHint(QPainter.RenderHint.SmoothPixmapTransform)
            target = QRectF(
                self._offset.x(),
                self._offset.y(),
                self._image_size[0] * self._scale,
                self._image_size[1] * self._scale,
            )
            painter.drawImage(target, self._qimage)
        painter.end()

    # ========================
    # 鼠标事件
    # ========================

    def _apply_cursor(self) -> None:
        shape = CURSOR_SHAPES.get(self._editor.cursor, Qt.CursorShape.OpenHandCursor)
        self.setCursor(QCursor(shape))

    def mousePressEvent(self, event: QMouseEvent) -> None:
        if event.button() != Qt.MouseButton.LeftButton or not self.has_image:
            super().mousePressEvent(event)
            return

        previous = self._editor.selected_id
        x, y = self.widget_to_image(event.position())
        self._editor.pointer_down(x, y)
        if self._editor.selected_id != previous:
            self.selection_changed.emit(self._editor.selected_id)
        self.refresh()

    def mouseMoveEvent(self, event: QMouseEvent) -> None:
        if not self.has_image:
            return
        x, y = self.widget_to_image(event.position())
        if self._editor.pointer_move(x, y):
            self.refresh()
            self.layers_changed.emit()
        else:
            self._apply_cursor()

    def mouseReleaseEvent(self, event: QMouseEvent) -> None:
        if event.button() == Qt.MouseButton.LeftButton:
            self._editor.pointer_up()
            self.refresh()
        super().mouseReleaseEvent(event)

    def leaveEvent(self, event: QEvent) -> None:
        was_dragging = self._editor.pointer.is_dragging
        self._editor.pointer_leave()
        self._apply_cursor()
        if was_dragging:
            self.refresh()
        super().leaveEvent(event)
