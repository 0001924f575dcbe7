"""日志工具模块.

所有模块通过 setup_logger(__name__) 取得 watermark_forge 包下的子记录器，
处理器只挂在包记录器上，不改动根记录器和第三方库的日志。

Features:
    - 控制台彩色输出
    - app.log 轮转记录
    - error.log 只记录错误
    - 运行时调整级别（来自设置的 log_level）
"""

from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional, Union

from watermark_forge.utils.constants import LOG_DIR

PACKAGE_LOGGER = "watermark_forge"

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

LOG_FILE_MAX_BYTES = 10 * 1024 * 1024  # 10MB
LOG_FILE_BACKUP_COUNT = 5

_configured = False


class ColoredFormatter(logging.Formatter):
    """按级别给级别名着色，只用于控制台."""

    COLORS = {
        logging.DEBUG: "\033[36m",
        logging.INFO: "\033[32m",
        logging.WARNING: "\033[33m",
        logging.ERROR: "\033[31m",
        logging.CRITICAL: "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelno, "")
        # 文件处理器共用同一条记录，着色只作用于副本
        record = logging.makeLogRecord(record.__dict__)
        record.levelname = f"{color}{record.levelname}{self.RESET}"
        return super().format(record)


def _rotating_handler(path: Path, level: int) -> RotatingFileHandler:
    handler = RotatingFileHandler(
        path,
        maxBytes=LOG_FILE_MAX_BYTES,
        backupCount=LOG_FILE_BACKUP_COUNT,
        encoding="utf-8",
    )
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))
    return handler


def configure_logging(level: Union[int, str] = logging.INFO, log_dir: Optional[Path] = None) -> logging.Logger:
    """（重新）配置包记录器的处理器.

    Args:
        level: 日志级别，可为级别名
        log_dir: 日志目录，默认 <APP_DATA_DIR>/logs

    Returns:
        包记录器
    """
    global _configured

    log_dir = Path(log_dir) if log_dir is not None else LOG_DIR
    log_dir.mkdir(parents=True, exist_ok=True)

    package = logging.getLogger(PACKAGE_LOGGER)
    for handler in list(package.handlers):
        package.removeHandler(handler)
        handler.close()
    package.propagate = False

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(ColoredFormatter(LOG_FORMAT, DATE_FORMAT))
    package.addHandler(console)
    package.addHandler(_rotating_handler(log_dir / "app.log", logging.NOTSET))
    package.addHandler(_rotating_handler(log_dir / "error.log", logging.ERROR))

    _configured = True
    set_log_level(level)
    return package


def setup_logger(name: str) -> logging.Logger:
    """返回模块记录器，首次调用时配置包记录器.

    Args:
        name: 通常为 __name__；包外的名称会挂到包记录器下

    Returns:
        继承包记录器级别和处理器的子记录器
    """
    if not _configured:
        configure_logging()
    if name != PACKAGE_LOGGER and not name.startswith(PACKAGE_LOGGER + "."):
        name = f"{PACKAGE_LOGGER}.{name}"
    return logging.getLogger(name)


def set_log_level(level: Union[int, str]) -> None:
    """调整包记录器级别，error.log 固定为 ERROR."""
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO
    logging.getLogger(PACKAGE_LOGGER).setLevel(level)


def get_log_level() -> int:
    return logging.getLogger(PACKAGE_LOGGER).level
