"""错误处理工具模块.

提供统一的错误处理机制和用户友好的错误消息。
"""

from __future__ import annotations

import functools
import inspect
from typing import Any, Callable, TypeVar

from watermark_forge.utils.exceptions import (
    AppException,
    DecodeError,
    EncodeError,
    ImageProcessError,
    StorageError,
    ValidationError,
)
from watermark_forge.utils.logger import setup_logger

logger = setup_logger(__name__)

T = TypeVar("T")


# 错误消息映射（ValidationError 直接使用自身消息）
ERROR_MESSAGES = {
    DecodeError: "图片无法读取，请检查文件是否损坏",
    EncodeError: "图片导出失败",
    ImageProcessError: "图片处理失败，请检查图片文件",
    StorageError: "预设存储读写失败",
}


def get_user_friendly_message(exception: Exception) -> str:
    """获取用户友好的错误消息.

    Args:
        exception: 异常对象

    Returns:
        用户友好的错误消息
    """
    if isinstance(exception, ValidationError):
        return exception.message

    for exc_type, message in ERROR_MESSAGES.items():
        if isinstance(exception, exc_type):
            return message

    if isinstance(exception, AppException):
        return exception.message

    return "操作失败，请稍后重试"


def get_error_details(exception: Exception) -> dict[str, Any]:
    """获取错误详细信息.

    Args:
        exception: 异常对象

    Returns:
        包含错误详情的字典
    """
    details = {
        "type": type(exception).__name__,
        "message": str(exception),
        "user_message": get_user_friendly_message(exception),
    }
    if isinstance(exception, AppException):
        details["code"] = exception.code
    return details


def _log_failure(name: str, exc: AppException) -> None:
    if isinstance(exc, ValidationError):
        logger.warning(f"{name} 被拒绝: {exc.message}")
    else:
        logger.error(f"{name} 失败: {exc}")


def handle_errors(func: Callable[..., T]) -> Callable[..., T]:
    """记录应用异常后继续抛出的装饰器.

    校验错误记为 WARNING，其余记为 ERROR。同时支持同步函数和协程函数。
    """
    if inspect.iscoroutinefunction(func):

        @functools.wraps(func)
        async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
            try:
                return await func(*args, **kwargs)
            except AppException as e:
                _log_failure(func.__name__, e)
                raise

        return async_wrapper  # type: ignore[return-value]

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> T:
        try:
            return func(*args, **kwargs)
        except AppException as e:
            _log_failure(func.__name__, e)
            raise

    return wrapper
