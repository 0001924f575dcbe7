"""自定义异常类."""

from __future__ import annotations


class AppException(Exception):
    """应用基础异常类.

    所有自定义异常都应继承此类。

    Attributes:
        message: 错误消息
        code: 错误代码
    """

    def __init__(self, message: str, code: str = "UNKNOWN") -> None:
        """初始化异常.

        Args:
            message: 错误消息
            code: 错误代码
        """
        self.message = message
        self.code = code
        super().__init__(self.message)

    def __str__(self) -> str:
        """返回异常字符串表示."""
        return f"[{self.code}] {self.message}"


# ===================
# 图片处理相关异常
# ===================
class ImageProcessError(AppException):
    """图片处理错误异常."""

    def __init__(self, message: str, code: str = "IMAGE_PROCESS_ERROR") -> None:
        super().__init__(message, code)


class DecodeError(ImageProcessError):
    """图片解码失败（数据损坏或格式无法识别）."""

    def __init__(self, source: str = "", reason: str = "") -> None:
        self.source = source
        msg = "图片数据无法解码"
        if source:
            msg += f": {source}"
        if reason:
            msg += f" ({reason})"
        super().__init__(msg, "DECODE_ERROR")


class EncodeError(ImageProcessError):
    """图片编码失败."""

    def __init__(self, source: str = "", reason: str = "") -> None:
        self.source = source
        msg = "图片编码失败"
        if source:
            msg += f": {source}"
        if reason:
            msg += f" ({reason})"
        super().__init__(msg, "ENCODE_ERROR")


# ===================
# 校验相关异常
# ===================
class ValidationError(AppException):
    """用户命令校验失败，未发生任何状态修改."""

    def __init__(self, message: str) -> None:
        super().__init__(message, "VALIDATION_ERROR")


class EmptyImageSetError(ValidationError):
    """未加载任何源图片."""

    def __init__(self) -> None:
        super().__init__("请先上传图片")


class EmptyLayerSetError(ValidationError):
    """没有任何图层."""

    def __init__(self) -> None:
        super().__init__("请至少添加一个 Logo、文字或边框")


class EmptyPresetNameError(ValidationError):
    """预设名称为空."""

    def __init__(self) -> None:
        super().__init__("请输入预设名称")


class NoPresetsError(ValidationError):
    """没有已保存的预设."""

    def __init__(self) -> None:
        super().__init__("没有已保存的预设")


class PresetNotFoundError(ValidationError):
    """预设未找到."""

    def __init__(self, query: str) -> None:
        self.query = query
        super().__init__(f"预设未找到: {query}")


class LayerNotFoundError(ValidationError):
    """图层未找到."""

    def __init__(self, layer_id: str) -> None:
        self.layer_id = layer_id
        super().__init__(f"图层未找到: {layer_id}")


# ===================
# 几何相关异常
# ===================
class GeometryRejected(AppException):
    """缩放结果违反最小尺寸约束.

    仅在交互层内部使用，不向用户展示。
    """

    def __init__(self, width: float, height: float, minimum: float) -> None:
        self.width = width
        self.height = height
        self.minimum = minimum
        super().__init__(
            f"尺寸 {width:.1f}x{height:.1f} 不大于最小值 {minimum}",
            "GEOMETRY_REJECTED",
        )


# ===================
# 存储相关异常
# ===================
class StorageError(AppException):
    """预设存储读写错误."""

    def __init__(self, message: str) -> None:
        super().__init__(message, "STORAGE_ERROR")
