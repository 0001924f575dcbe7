"""主窗口模块.

布局结构:
    ┌─────────────────────────────────────────────┐
    │                   工具栏                     │
    ├─────────────────────────────────────────────┤
    │                                             │
    │                 预览画布                     │
    │                                             │
    ├─────────────────────────────────────────────┤
    │               状态栏（导出进度）              │
    └─────────────────────────────────────────────┘
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Awaitable, Optional, TypeVar

from PyQt6.QtGui import QAction, QCloseEvent
from PyQt6.QtWidgets import (
    QFileDialog,
    QInputDialog,
    QMainWindow,
    QMessageBox,
    QProgressBar,
    QToolBar,
    QWidget,
)

from watermark_forge.core.batch_exporter import ExportReport, validate_export
from watermark_forge.core.editor import EditorController
from watermark_forge.models.app_settings import get_settings
from watermark_forge.services.archive import write_archive
from watermark_forge.ui.export_worker import ExportController
from watermark_forge.ui.preview_canvas import PreviewCanvas
from watermark_forge.utils.constants import APP_NAME, APP_VERSION
from watermark_forge.utils.error_handler import get_user_friendly_message
from watermark_forge.utils.exceptions import AppException, NoPresetsError
from watermark_forge.utils.logger import setup_logger

logger = setup_logger(__name__)

T = TypeVar("T")

IMAGE_FILTER = "图片 (*.png *.jpg *.jpeg *.webp *.bmp *.gif)"

WINDOW_MIN_WIDTH = 960
WINDOW_MIN_HEIGHT = 640


def _read_files(paths: list[str]) -> list[tuple[str, bytes]]:
    return [(Path(p).name, Path(p).read_bytes()) for p in paths]


class MainWindow(QMainWindow):
    """应用主窗口.

    提供载入图片、添加图层、导出和预设操作，校验失败时弹窗提示。
    """

    def __init__(
        self,
        editor: Optional[EditorController] = None,
        parent: Optional[QWidget] = None,
    ) -> None:
        super().__init__(parent)
        self._editor = editor or EditorController()
        self._export_controller = ExportController(self._editor, self)

        self.setWindowTitle(f"{APP_NAME} {APP_VERSION}")
        self.setMinimumSize(WINDOW_MIN_WIDTH, WINDOW_MIN_HEIGHT)

        self._canvas = PreviewCanvas(self._editor, self)
        self.setCentralWidget(self._canvas)

        self._progress_bar = QProgressBar(self)
        self._progress_bar.setRange(0, 100)
        self._progress_bar.setVisible(False)
        self.statusBar().addPermanentWidget(self._progress_bar)

        self._setup_toolbar()
        self._connect_signals()

    @property
    def editor(self) -> EditorController:
        return self._editor

    @property
    def canvas(self) -> PreviewCanvas:
        return self._canvas

    # ========================
    # 界面
    # ========================

    def _setup_toolbar(self) -> None:
        toolbar = QToolBar("主工具栏", self)
        toolbar.setMovable(False)
        self.addToolBar(toolbar)

        actions = [
            ("载入图片", self._on_load_images),
            ("添加 Logo", self._on_add_logo),
            ("添加文字", self._on_add_text),
            ("添加边框", self._on_add_frame),
            ("删除选中", self._on_remove_selected),
            ("导出", self._on_export),
            ("保存预设", self._on_save_preset),
            ("加载预设", self._on_load_preset),
        ]
        for text, slot in actions:
            action = QAction(text, self)
            action.triggered.connect(slot)
            toolbar.addAction(action)

    def _connect_signals(self) -> None:
        self._export_controller.progress_changed.connect(self._on_export_progress)
        self._export_controller.export_completed.connect(self._on_export_completed)
        self._export_controller.error_occurred.connect(self._on_export_error)

    def show_rejection(self, exception: Exception) -> None:
        """显示用户可读的拒绝消息."""
        QMessageBox.warning(self, "提示", get_user_friendly_message(exception))

    def _run(self, coro: Awaitable[T]) -> Optional[T]:
        """在界面线程中执行协程，应用异常以消息框提示."""
        try:
            return asyncio.run(coro)
        except AppException as e:
            self.show_rejection(e)
            return None

    # ========================
    # 槽函数
    # ========================

    def _on_load_images(self) -> None:
        paths, _ = QFileDialog.getOpenFileNames(self, "选择图片", "", IMAGE_FILTER)
        if not paths:
            return
        errors = self._run(self._editor.load_images(_read_files(paths)))
        if errors:
            self.show_rejection(errors[0])
        self.statusBar().showMessage(f"已载入 {len(self._editor.sources)} 张图片")
        self._canvas.refresh()

    def _on_add_logo(self) -> None:
        paths, _ = QFileDialog.getOpenFileNames(self, "选择 Logo", "", IMAGE_FILTER)
        for name, data in _read_files(paths):
            self._run(self._editor.add_logo(data, name))
        self._canvas.refresh()

    def _on_add_text(self) -> None:
        self._editor.add_text()
        self._canvas.refresh()

    def _on_add_frame(self) -> None:
        self._editor.add_frame()
        self._canvas.refresh()

    def _on_remove_selected(self) -> None:
        selected = self._editor.selected_id
        if selected is None:
            return
        self._editor.remove_layer(selected)
        self._canvas.refresh()

    def _on_export(self) -> None:
        if self._export_controller.is_running:
            return
        # 先在界面线程完成校验，失败时不启动线程
        try:
            validate_export(self._editor.sources, self._editor.store)
        except AppException as e:
            self.show_rejection(e)
            return

        self._progress_bar.setValue(0)
        self._progress_bar.setVisible(True)
        self._export_controller.start()

    def _on_export_progress(self, percent: int, completed: int, total: int) -> None:
        self._progress_bar.setValue(percent)
        self.statusBar().showMessage(f"正在导出 {completed}/{total}")

    def _on_export_completed(self, report: ExportReport) -> None:
        self._progress_bar.setVisible(False)
        settings = get_settings()
        path, _ = QFileDialog.getSaveFileName(self, "保存压缩包", settings.archive_name, "ZIP (*.zip)")
        if path:
            write_archive(path, report.as_pairs(), settings.export_folder)
        message = f"导出完成: {report.succeeded}/{report.total}"
        if report.failures:
            message += f"，失败 {len(report.failures)} 张"
        self.statusBar().showMessage(message)

    def _on_export_error(self, exception: Exception) -> None:
        self._progress_bar.setVisible(False)
        self.show_rejection(exception)

    def _on_save_preset(self) -> None:
        name, ok = QInputDialog.getText(self, "保存预设", "预设名称:")
        if not ok:
            return
        try:
            self._editor.save_preset(name)
        except AppException as e:
            self.show_rejection(e)
            return
        QMessageBox.information(self, "提示", f"预设 \"{name}\" 已保存")

    def _on_load_preset(self) -> None:
        try:
            names = self._editor.preset_names()
        except AppException as e:
            self.show_rejection(e)
            return
        if not names:
            self.show_rejection(NoPresetsError())
            return

        listing = "\n".join(f"{i}. {name}" for i, name in enumerate(names, start=1))
        query, ok = QInputDialog.getText(self, "加载预设", f"已保存的预设:\n{listing}\n\n输入序号或名称:")
        if not ok or not query:
            return
        if self._run(self._editor.load_preset(query)) is not None:
            self._canvas.refresh()
            self.statusBar().showMessage("预设已加载")

    def closeEvent(self, event: QCloseEvent) -> None:
        if self._export_controller.is_running:
            self._export_controller.wait()
        super().closeEvent(event)
