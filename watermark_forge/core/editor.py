"""编辑器控制器.

集中持有编辑器的全部可变状态（图层存储、源图片、参考图、拖拽会话、导出进度），
所有修改都经由本类的方法完成。界面层只调用这些方法并显示结果。

Features:
    - 源图片加载与参考图切换
    - 图层增删改
    - 指针事件转发
    - 预览渲染
    - 批量导出
    - 预设保存与加载
"""

from __future__ import annotations

from typing import Any, Iterable, Optional

from PIL import Image

from watermark_forge.core.batch_exporter import (
    BatchExporter,
    ExportJob,
    ExportProgressCallback,
    ExportReport,
    validate_export,
)
from watermark_forge.core.compositor import Compositor
from watermark_forge.core.fonts import measure_text_width
from watermark_forge.core.interaction import (
    DragSession,
    PointerStateMachine,
    TextMeasurer,
)
from watermark_forge.core.preview import PreviewDriver
from watermark_forge.models.app_settings import Settings, get_settings
from watermark_forge.models.layers import (
    AnyLayer,
    FrameLayer,
    LayerStore,
    LogoAsset,
    LogoLayer,
    TextLayer,
)
from watermark_forge.models.source_image import SourceImage, load_source_images
from watermark_forge.services.preset_store import JsonFileStore, PresetManager
from watermark_forge.utils.error_handler import handle_errors
from watermark_forge.utils.exceptions import DecodeError, ValidationError
from watermark_forge.utils.logger import setup_logger

logger = setup_logger(__name__)

# 修改后需要按参考图重新落实的字段
_RELATIVE_FIELDS = {
    "position_mode",
    "rel_x",
    "rel_y",
    "rel_width",
    "rel_height",
    "rel_border_width",
    "rel_font_size",
}


class EditorController:
    """编辑器控制器.

    Example:
        >>> editor = EditorController()
        >>> await editor.load_images([("a.jpg", data_a), ("b.jpg", data_b)])
        >>> editor.add_frame()
        >>> preview = editor.render()
        >>> report = await editor.export()
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        preset_manager: Optional[PresetManager] = None,
        measure_text: TextMeasurer = measure_text_width,
    ) -> None:
        """初始化控制器.

        Args:
            settings: 应用设置，默认使用全局设置
            preset_manager: 预设管理器，默认按设置使用文件存储
            measure_text: 文字宽度测量函数
        """
        settings = settings or get_settings()
        compositor = Compositor()

        self._store = LayerStore()
        self._sources: list[SourceImage] = []
        self._machine = PointerStateMachine(
            self._store,
            measure_text=measure_text,
            handle_tolerance=settings.handle_tolerance,
            min_size=settings.min_layer_size,
        )
        self._preview = PreviewDriver(
            self._store,
            compositor=compositor,
            marker_size=settings.handle_marker_size,
            measure_text=measure_text,
        )
        self._exporter = BatchExporter(compositor)
        self._presets = preset_manager or PresetManager(
            JsonFileStore(settings.presets_file), settings.presets_key
        )

    # ========================
    # 属性
    # ========================

    @property
    def store(self) -> LayerStore:
        return self._store

    @property
    def sources(self) -> list[SourceImage]:
        return list(self._sources)

    @property
    def reference(self) -> Optional[Image.Image]:
        return self._preview.reference

    @property
    def preview(self) -> PreviewDriver:
        return self._preview

    @property
    def pointer(self) -> PointerStateMachine:
        return self._machine

    @property
    def presets(self) -> PresetManager:
        return self._presets

    @property
    def selected_id(self) -> Optional[str]:
        return self._machine.selected_id

    @property
    def cursor(self) -> str:
        return self._machine.cursor

    @property
    def progress(self) -> float:
        """最近一次导出的进度（0-1）."""
        return self._exporter.progress

    @property
    def is_exporting(self) -> bool:
        return self._exporter.is_exporting

    # ========================
    # 源图片与参考图
    # ========================

    @handle_errors
    async def load_images(self, files: Iterable[tuple[str, bytes]]) -> list[DecodeError]:
        """加载源图片，替换现有的源图片集合.

        没有参考图时以第一张成功加载的图片作为参考图。

        Args:
            files: (文件名, 字节) 序列

        Returns:
            解码失败的错误列表
        """
        images, errors = await load_source_images(files)
        self._sources = images
        if images and self._preview.reference is None:
            self._preview.set_reference(images[0].raster)
        return errors

    @handle_errors
    def select_reference(self, index: int) -> SourceImage:
        """把指定源图片设为参考图.

        Raises:
            ValidationError: 序号超出范围
        """
        if not 0 <= index < len(self._sources):
            raise ValidationError(f"图片序号超出范围: {index + 1}")
        source = self._sources[index]
        self._preview.set_reference(source.raster)
        return source

    @handle_errors
    async def set_reference_image(self, data: bytes, source: str = "") -> bool:
        """解码并设置参考图，被更新请求取代的结果会被丢弃.

        Returns:
            是否采用了本次结果
        """
        return await self._preview.load_reference(data, source)

    # ========================
    # 图层操作
    # ========================

    def _track(self, layer: AnyLayer) -> AnyLayer:
        self._preview.mark_pending(layer.id)
        logger.info(f"已添加{layer.type.value}图层: {layer.id}")
        return layer

    @handle_errors
    async def add_logo(self, data: bytes, source: str = "", **overrides: Any) -> LogoLayer:
        """解码 Logo 图片并添加图层，解码完成前图层不会出现.

        Raises:
            DecodeError: 图片无法解码
        """
        asset = await LogoAsset.from_bytes_async(data, source)
        return self._track(self._store.add_logo(asset, **overrides))

    @handle_errors
    def add_text(self, **overrides: Any) -> TextLayer:
        """以默认值添加文字图层."""
        return self._track(self._store.add_text(**overrides))

    @handle_errors
    def add_frame(self, **overrides: Any) -> FrameLayer:
        """以默认几何添加边框图层."""
        return self._track(self._store.add_frame(**overrides))

    @handle_errors
    def update_layer(self, layer_id: str, **changes: Any) -> AnyLayer:
        """修改图层属性.

        修改了相对坐标或切换为相对模式时，下次渲染按参考图重新落实像素值。

        Raises:
            LayerNotFoundError: 图层不存在
            ValidationError: 属性无效
        """
        layer = self._store.update(layer_id, **changes)
        if layer.is_relative and _RELATIVE_FIELDS.intersection(changes):
            self._preview.mark_pending(layer_id)
        return layer

    @handle_errors
    def remove_layer(self, layer_id: str) -> AnyLayer:
        """删除图层.

        Raises:
            LayerNotFoundError: 图层不存在
        """
        layer = self._store.remove(layer_id)
        logger.info(f"已删除{layer.type.value}图层: {layer_id}")
        return layer

    # ========================
    # 指针事件
    # ========================

    def pointer_down(self, x: float, y: float) -> Optional[DragSession]:
        return self._machine.pointer_down(x, y)

    def pointer_move(self, x: float, y: float) -> bool:
        return self._machine.pointer_move(x, y)

    def pointer_up(self) -> None:
        self._machine.pointer_up()

    def pointer_leave(self) -> None:
        self._machine.pointer_leave()

    # ========================
    # 渲染与导出
    # ========================

    def render(self, decorate: bool = True) -> Optional[Image.Image]:
        """渲染预览，没有参考图时返回 None."""
        return self._preview.render(selected_id=self._machine.selected_id, decorate=decorate)

    @handle_errors
    def prepare_export(self) -> ExportJob:
        """校验并生成导出任务.

        按当前参考图完成一次落实与同步后复制图层，需在界面线程调用。

        Raises:
            EmptyImageSetError: 没有源图片
            EmptyLayerSetError: 没有任何图层
        """
        validate_export(self._sources, self._store)
        self._preview.prepare()
        return ExportJob(tuple(self._sources), self._store.snapshot())

    async def run_export(
        self, job: ExportJob, on_progress: Optional[ExportProgressCallback] = None
    ) -> ExportReport:
        """执行导出任务，只读取任务中的快照."""
        return await self._exporter.export(job.sources, job.store, on_progress)

    @handle_errors
    async def export(self, on_progress: Optional[ExportProgressCallback] = None) -> ExportReport:
        """对所有源图片执行批量导出.

        Raises:
            EmptyImageSetError: 没有源图片
            EmptyLayerSetError: 没有任何图层
        """
        return await self.run_export(self.prepare_export(), on_progress)

    # ========================
    # 预设
    # ========================

    def preset_names(self) -> list[str]:
        return self._presets.list_names()

    @handle_errors
    def save_preset(self, name: str) -> None:
        """保存当前图层为预设.

        Raises:
            EmptyPresetNameError: 名称为空
        """
        self._presets.save(name, self._store)

    @handle_errors
    async def load_preset(self, query: str) -> LayerStore:
        """按名称或序号加载预设，整体替换当前图层.

        Raises:
            NoPresetsError: 没有已保存的预设
            PresetNotFoundError: 预设不存在
        """
        loaded = await self._presets.load(query)
        self._machine.reset()
        self._store.replace(loaded)
        self._preview.mark_all_pending()
        return self._store
