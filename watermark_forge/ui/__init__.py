"""用户界面模块."""

from watermark_forge.ui.export_worker import ExportController, ExportWorker
from watermark_forge.ui.main_window import MainWindow
from watermark_forge.ui.preview_canvas import PreviewCanvas

__all__ = [
    "ExportController",
    "ExportWorker",
    "MainWindow",
    "PreviewCanvas",
]
