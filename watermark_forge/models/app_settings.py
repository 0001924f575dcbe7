"""应用设置模型."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from watermark_forge.utils.constants import (
    ARCHIVE_NAME,
    EXPORT_FOLDER,
    HANDLE_MARKER_SIZE,
    HANDLE_TOLERANCE,
    MIN_LAYER_SIZE,
    PRESETS_FILE,
    PRESETS_KEY,
)


class Settings(BaseSettings):
    """应用设置.

    支持从环境变量（WATERMARK_FORGE_ 前缀）和 .env 文件加载配置。

    Attributes:
        log_level: 日志级别
        handle_tolerance: 控制点命中容差（像素）
        handle_marker_size: 预览控制点标记边长（像素）
        min_layer_size: 缩放最小尺寸（像素，严格大于）
        presets_file: 预设存储文件
        presets_key: 预设列表在存储中的键
        export_folder: 压缩包内的输出目录
        archive_name: 压缩包文件名
    """

    model_config = SettingsConfigDict(
        env_prefix="WATERMARK_FORGE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    log_level: str = Field(default="INFO", description="日志级别")

    handle_tolerance: float = Field(
        default=HANDLE_TOLERANCE,
        gt=0,
        le=100,
        description="控制点命中容差",
    )
    handle_marker_size: int = Field(
        default=HANDLE_MARKER_SIZE,
        ge=2,
        le=64,
        description="控制点标记边长",
    )
    min_layer_size: float = Field(
        default=MIN_LAYER_SIZE,
        ge=1,
        description="最小图层尺寸",
    )

    presets_file: Path = Field(default=PRESETS_FILE, description="预设存储文件")
    presets_key: str = Field(default=PRESETS_KEY, description="预设存储键")
    export_folder: str = Field(default=EXPORT_FOLDER, description="输出目录名")
    archive_name: str = Field(default=ARCHIVE_NAME, description="压缩包文件名")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """验证日志级别."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper_v = v.upper()
        if upper_v not in valid_levels:
            raise ValueError(f"无效的日志级别: {v}，有效值: {valid_levels}")
        return upper_v


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """获取应用设置（缓存实例）."""
    return Settings()


def reset_settings() -> None:
    """清除缓存的设置实例."""
    get_settings.cache_clear()
