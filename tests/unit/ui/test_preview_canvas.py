"""PreviewCanvas 与主窗口单元测试."""

from __future__ import annotations

import asyncio

import pytest
from PIL import Image
from PyQt6.QtCore import QPointF, Qt
from PyQt6.QtGui import QImage
from PyQt6.QtWidgets import QApplication

from watermark_forge.core.editor import EditorController
from watermark_forge.models.app_settings import Settings
from watermark_forge.ui.export_worker import ExportController, ExportWorker
from watermark_forge.ui.main_window import MainWindow
from watermark_forge.ui.preview_canvas import CURSOR_SHAPES, PreviewCanvas, pil_to_qimage
from watermark_forge.utils.exceptions import EmptyImageSetError, EmptyLayerSetError


@pytest.fixture(scope="module")
def app():
    """创建 Qt 应用实例."""
    application = QApplication.instance()
    if not application:
        application = QApplication([])
    yield application


@pytest.fixture
def editor(preset_manager, measure):
    """创建编辑器控制器."""
    return EditorController(settings=Settings(), preset_manager=preset_manager, measure_text=measure)


@pytest.fixture
def canvas(app, editor):
    """创建 PreviewCanvas 实例."""
    widget = PreviewCanvas(editor)
    yield widget
    widget.close()


class TestPilToQImage:
    """PIL 到 QImage 转换测试."""

    def test_rgba(self, app):
        """测试 RGBA 图片转换."""
        qimage = pil_to_qimage(Image.new("RGBA", (30, 20), (0, 255, 0, 255)))
        assert (qimage.width(), qimage.height()) == (30, 20)
        assert qimage.format() == QImage.Format.Format_RGBA8888
        assert qimage.pixelColor(5, 5).green() == 255

    def test_rgb_converted(self, app):
        """测试 RGB 图片先转换为 RGBA."""
        qimage = pil_to_qimage(Image.new("RGB", (8, 4), (0, 0, 255)))
        assert qimage.pixelColor(0, 0).blue() == 255
        assert qimage.pixelColor(0, 0).alpha() == 255


class TestPreviewCanvas:
    """预览画布测试."""

    def test_refresh_without_image(self, canvas):
        """测试没有参考图时不显示图片."""
        canvas.refresh()
        assert not canvas.has_image
        assert canvas.scale == 1.0

    def test_coordinate_mapping(self, canvas, editor, make_png):
        """测试按比例居中后的坐标换算."""
        asyncio.run(editor.load_images([("a.png", make_png((1000, 500)))]))
        canvas.resize(640, 480)
        canvas.refresh()

        assert canvas.has_image
        assert canvas.scale == pytest.approx(0.64)
        assert canvas.widget_to_image(QPointF(320, 240)) == pytest.approx((500, 250))
        point = canvas.image_to_widget(0, 0)
        assert (point.x(), point.y()) == pytest.approx((0, 80))

    def test_cursor_shapes(self):
        """测试所有控制点方向都有对应光标."""
        for handle in ("nw", "ne", "sw", "se", "n", "s", "e", "w"):
            assert f"{handle}-resize" in CURSOR_SHAPES
        assert CURSOR_SHAPES["grab"] == Qt.CursorShape.OpenHandCursor
        assert CURSOR_SHAPES["nw-resize"] == CURSOR_SHAPES["se-resize"]


class TestMainWindow:
    """主窗口测试."""

    @pytest.fixture
    def window(self, app, editor, monkeypatch):
        """创建主窗口，拒绝消息记录到列表中."""
        main_window = MainWindow(editor)
        rejections = []
        monkeypatch.setattr(main_window, "show_rejection", rejections.append)
        main_window.rejections = rejections
        yield main_window
        main_window.close()

    def test_add_layers(self, window, editor):
        """测试工具栏添加图层."""
        window._on_add_frame()
        window._on_add_text()
        assert len(editor.store.frames) == 1
        assert len(editor.store.texts) == 1

    def test_export_rejected_without_images(self, window):
        """测试没有图片时导出被拒绝且不启动线程."""
        window._on_add_frame()
        window._on_export()
        assert len(window.rejections) == 1
        assert isinstance(window.rejections[0], EmptyImageSetError)
        assert not window._export_controller.is_running

    def test_export_rejected_without_layers(self, window, editor, make_png):
        """测试没有图层时导出被拒绝."""
        asyncio.run(editor.load_images([("a.png", make_png((20, 20)))]))
        window._on_export()
        assert isinstance(window.rejections[0], EmptyLayerSetError)


class TestExportWorker:
    """导出工作器测试."""

    def test_run_uses_job_snapshot(self, app, editor, make_png):
        """测试工作器只导出任务中的图层快照."""
        asyncio.run(editor.load_images([("a.png", make_png((100, 100))), ("b.png", make_png((50, 50)))]))
        frame = editor.add_frame()
        job = editor.prepare_export()
        editor.remove_layer(frame.id)

        worker = ExportWorker(editor, job)
        reports = []
        progress = []
        worker.export_completed.connect(reports.append)
        worker.progress_changed.connect(lambda percent, *_: progress.append(percent))
        worker.run()

        assert reports[0].filenames == ["a.png", "b.png"]
        assert progress == [50, 100]
        assert not worker.is_running
        assert editor.store.is_empty

    def test_controller_rejects_without_images(self, app, editor):
        """测试没有图片时控制器不启动线程."""
        controller = ExportController(editor)
        errors = []
        controller.error_occurred.connect(errors.append)
        editor.add_frame()

        assert controller.start() is False
        assert isinstance(errors[0], EmptyImageSetError)
        assert not controller.is_running
