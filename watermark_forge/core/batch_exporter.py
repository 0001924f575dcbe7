"""批量导出模块.

把同一组图层依次应用到每一张源图片上，每张图片按自身尺寸解析几何，
合成时不绘制任何预览装饰，编码为 PNG 后以原文件名输出。

Features:
    - 导出前的输入校验（无图片/无图层时拒绝，进度不变）
    - 按源图片自身尺寸解析图层
    - 顺序处理，进度严格递增并在最后一张完成时到达 1.0
    - 单张编码失败只记录，不中断其余图片
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Optional, Sequence

from watermark_forge.core.compositor import Compositor
from watermark_forge.core.geometry import resolve_store, sync_relative_from_absolute
from watermark_forge.models.layers import LayerStore
from watermark_forge.models.source_image import SourceImage
from watermark_forge.utils.exceptions import (
    EmptyImageSetError,
    EmptyLayerSetError,
    EncodeError,
)
from watermark_forge.utils.image_utils import encode_image_async
from watermark_forge.utils.logger import setup_logger

logger = setup_logger(__name__)

# 进度回调 (progress 0-1, 已完成数, 总数)
ExportProgressCallback = Callable[[float, int, int], None]


@dataclass(frozen=True)
class ExportResult:
    """单张导出结果.

    Attributes:
        filename: 源图片原文件名
        data: PNG 字节
    """

    filename: str
    data: bytes


@dataclass
class ExportReport:
    """批量导出报告."""

    outputs: list[ExportResult] = field(default_factory=list)
    failures: list[EncodeError] = field(default_factory=list)
    total: int = 0

    @property
    def succeeded(self) -> int:
        return len(self.outputs)

    @property
    def filenames(self) -> list[str]:
        return [result.filename for result in self.outputs]

    def as_pairs(self) -> list[tuple[str, bytes]]:
        """(文件名, 字节) 列表，交给打包模块使用."""
        return [(result.filename, result.data) for result in self.outputs]


@dataclass(frozen=True)
class ExportJob:
    """一次导出的输入：源图片列表和图层快照.

    导出在工作线程中只读取这里的副本，界面线程可以继续编辑原图层。
    """

    sources: tuple[SourceImage, ...]
    store: LayerStore


def validate_export(sources: Sequence[SourceImage], store: LayerStore) -> None:
    """校验导出输入.

    Raises:
        EmptyImageSetError: 没有源图片
        EmptyLayerSetError: 没有任何图层
    """
    if not sources:
        raise EmptyImageSetError()
    if store.is_empty:
        raise EmptyLayerSetError()


class BatchExporter:
    """批量导出器.

    Example:
        >>> exporter = BatchExporter()
        >>> report = await exporter.export(sources, store, on_progress=print)
        >>> report.filenames
        ['a.jpg', 'b.png']
    """

    def __init__(self, compositor: Optional[Compositor] = None) -> None:
        self._compositor = compositor or Compositor()
        self._progress = 0.0
        self._is_exporting = False

    @property
    def progress(self) -> float:
        """最近一次导出的进度（0-1）."""
        return self._progress

    @property
    def is_exporting(self) -> bool:
        return self._is_exporting

    async def export(
        self,
        sources: Sequence[SourceImage],
        store: LayerStore,
        on_progress: Optional[ExportProgressCallback] = None,
        reference_size: Optional[tuple[int, int]] = None,
    ) -> ExportReport:
        """导出所有源图片.

        Args:
            sources: 源图片序列
            store: 图层存储
            on_progress: 进度回调
            reference_size: 当前参考图尺寸，提供时先按它同步一次相对坐标

        Returns:
            导出报告

        Raises:
            EmptyImageSetError: 没有源图片（进度不变）
            EmptyLayerSetError: 没有任何图层（进度不变）
        """
        validate_export(sources, store)

        if reference_size is not None:
            sync_relative_from_absolute(store, *reference_size)

        total = len(sources)
        report = ExportReport(total=total)
        self._progress = 0.0
        self._is_exporting = True
        logger.info(f"开始批量导出，共 {total} 张图片，{store.layer_count} 个图层")

        try:
            for index, source in enumerate(sources):
                resolved = resolve_store(store, source.width, source.height)
                image = self._compositor.composite(source.raster, resolved)
                try:
                    data = await encode_image_async(image, source.filename)
                    report.outputs.append(ExportResult(source.filename, data))
                except EncodeError as e:
                    logger.error(f"导出失败，继续处理其余图片: {source.filename}")
                    report.failures.append(e)

                completed = index + 1
                self._progress = completed / total
                if on_progress:
                    on_progress(self._progress, completed, total)
        finally:
            self._is_exporting = False

        logger.info(f"批量导出完成: {report.succeeded}/{total} 成功, {len(report.failures)} 失败")
        return report
