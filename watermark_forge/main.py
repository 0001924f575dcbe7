"""批量图片水印工具 - 应用入口."""

from __future__ import annotations

import sys


def main() -> int:
    """应用主入口函数.

    Returns:
        退出码，0 表示正常退出
    """
    from PyQt6.QtWidgets import QApplication

    from watermark_forge.models.app_settings import get_settings
    from watermark_forge.ui.main_window import MainWindow
    from watermark_forge.utils.constants import APP_DATA_DIR, APP_NAME, APP_VERSION
    from watermark_forge.utils.logger import configure_logging, setup_logger

    settings = get_settings()
    configure_logging(settings.log_level)
    logger = setup_logger(__name__)
    logger.info(f"启动 {APP_NAME} {APP_VERSION}")

    APP_DATA_DIR.mkdir(parents=True, exist_ok=True)

    # 创建 Qt 应用
    qt_app = QApplication(sys.argv)
    qt_app.setApplicationName(APP_NAME)
    qt_app.setApplicationVersion(APP_VERSION)

    try:
        window = MainWindow()
        window.show()

        exit_code = qt_app.exec()
        logger.info(f"应用正常退出，退出码: {exit_code}")
        return exit_code

    except Exception as e:
        logger.exception(f"应用运行时发生错误: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
