"""核心业务逻辑模块."""

from watermark_forge.core.batch_exporter import (
    BatchExporter,
    ExportJob,
    ExportReport,
    ExportResult,
)
from watermark_forge.core.compositor import Compositor, composite
from watermark_forge.core.geometry import (
    ResolvedFrame,
    ResolvedLayers,
    ResolvedLogo,
    ResolvedText,
    materialize_relative,
    resolve_absolute,
    resolve_store,
    sync_relative_from_absolute,
)
from watermark_forge.core.interaction import (
    DragKind,
    DragSession,
    HandlePosition,
    PointerStateMachine,
)
from watermark_forge.core.editor import EditorController
from watermark_forge.core.preview import PreviewDriver

__all__ = [
    # 导出
    "BatchExporter",
    "ExportJob",
    "ExportReport",
    "ExportResult",
    # 合成
    "Compositor",
    "composite",
    # 几何
    "ResolvedFrame",
    "ResolvedLayers",
    "ResolvedLogo",
    "ResolvedText",
    "materialize_relative",
    "resolve_absolute",
    "resolve_store",
    "sync_relative_from_absolute",
    # 交互
    "DragKind",
    "DragSession",
    "HandlePosition",
    "PointerStateMachine",
    # 编辑器
    "EditorController",
    # 预览
    "PreviewDriver",
]
