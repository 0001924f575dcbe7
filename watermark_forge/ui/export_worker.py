"""导出工作器模块.

在 Qt 线程中运行异步批量导出，通过信号把进度和结果交还给界面。
"""

from __future__ import annotations

import asyncio
from typing import Optional

from PyQt6.QtCore import QObject, QThread, pyqtSignal, pyqtSlot

from watermark_forge.core.batch_exporter import ExportJob, ExportReport
from watermark_forge.core.editor import EditorController
from watermark_forge.utils.exceptions import AppException
from watermark_forge.utils.logger import setup_logger

logger = setup_logger(__name__)


class ExportWorker(QObject):
    """导出工作器.

    Signals:
        progress_changed: 进度信号 (percent 0-100, completed, total)
        export_completed: 导出完成信号 (ExportReport)
        error_occurred: 错误信号 (Exception)
        finished: 工作结束信号（无论成功与否）
    """

    progress_changed = pyqtSignal(int, int, int)
    export_completed = pyqtSignal(object)
    error_occurred = pyqtSignal(object)
    finished = pyqtSignal()

    def __init__(
        self,
        editor: EditorController,
        job: ExportJob,
        parent: Optional[QObject] = None,
    ) -> None:
        super().__init__(parent)
        self._editor = editor
        self._job = job
        self._is_running = False

    @property
    def is_running(self) -> bool:
        return self._is_running

    @pyqtSlot()
    def run(self) -> None:
        """在独立的事件循环中执行导出."""
        if self._is_running:
            logger.warning("导出已在进行中")
            return

        self._is_running = True
        loop = asyncio.new_event_loop()
        try:
            asyncio.set_event_loop(loop)
            report = loop.run_until_complete(
                self._editor.run_export(self._job, on_progress=self._on_progress)
            )
            self.export_completed.emit(report)
        except AppException as e:
            self.error_occurred.emit(e)
        finally:
            loop.close()
            self._is_running = False
            self.finished.emit()

    def _on_progress(self, progress: float, completed: int, total: int) -> None:
        self.progress_changed.emit(round(progress * 100), completed, total)


class ExportController(QObject):
    """导出控制器.

    管理导出线程的生命周期。

    Signals:
        progress_changed: 进度信号 (percent, completed, total)
        export_completed: 导出完成信号 (ExportReport)
        error_occurred: 错误信号 (Exception)

    Example:
        >>> controller = ExportController(editor, main_window)
        >>> controller.export_completed.connect(on_done)
        >>> controller.start()
    """

    progress_changed = pyqtSignal(int, int, int)
    export_completed = pyqtSignal(object)
    error_occurred = pyqtSignal(object)

    def __init__(self, editor: EditorController, parent: Optional[QObject] = None) -> None:
        super().__init__(parent)
        self._editor = editor
        self._thread: Optional[QThread] = None
        self._worker: Optional[ExportWorker] = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.isRunning()

    def start(self) -> bool:
        """在界面线程生成图层快照后启动导出线程.

        Returns:
            是否启动了线程，校验失败时发出 error_occurred
        """
        if self.is_running:
            logger.warning("导出已在进行中")
            return False

        try:
            job = self._editor.prepare_export()
        except AppException as e:
            self.error_occurred.emit(e)
            return False

        self._thread = QThread(self)
        self._worker = ExportWorker(self._editor, job)
        self._worker.moveToThread(self._thread)

        self._thread.started.connect(self._worker.run)
        self._worker.progress_changed.connect(self.progress_changed)
        self._worker.export_completed.connect(self._on_completed)
        self._worker.error_occurred.connect(self.error_occurred)
        self._worker.finished.connect(self._thread.quit)

        self._thread.start()
        logger.info("导出线程已启动")
        return True

    def wait(self, msecs: int = 5000) -> bool:
        """等待导出线程结束."""
        if self._thread is None:
            return True
        return self._thread.wait(msecs)

    def _on_completed(self, report: ExportReport) -> None:
        self.export_completed.emit(report)
