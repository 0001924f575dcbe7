"""WatermarkForge - 批量图片水印叠加工具."""

__version__ = "1.0.0"
