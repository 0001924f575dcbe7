"""应用常量定义."""

from pathlib import Path

# ===================
# 应用信息
# ===================
APP_NAME = "WatermarkForge"
APP_VERSION = "1.0.0"

# ===================
# 路径常量
# ===================
# 应用数据目录
APP_DATA_DIR = Path.home() / ".watermark-forge"

# 日志目录
LOG_DIR = APP_DATA_DIR / "logs"

# 预设文件
PRESETS_FILE = APP_DATA_DIR / "presets.json"

# ===================
# 几何与交互
# ===================
# 缩放时宽高必须严格大于该值
MIN_LAYER_SIZE = 10

# 控制点命中容差（像素，以角点/边中点为中心的正方形半边长）
HANDLE_TOLERANCE = 10

# 预览中控制点标记的边长
HANDLE_MARKER_SIZE = 8
HANDLE_MARKER_COLOR = "#ff6b35"

# 选中框
SELECTION_COLOR = "#1890ff"
SELECTION_WIDTH = 2

# 默认光标提示
DEFAULT_CURSOR = "grab"

# ===================
# 预设与导出
# ===================
PRESETS_KEY = "watermarkPresets"
EXPORT_FOLDER = "watermarked-images"
ARCHIVE_NAME = "watermarked-images.zip"

# 导出格式（无损）
OUTPUT_FORMAT = "PNG"
OUTPUT_MIME = "image/png"

# 支持的图片格式
SUPPORTED_IMAGE_FORMATS = {".jpg", ".jpeg", ".png", ".webp", ".bmp", ".gif"}
