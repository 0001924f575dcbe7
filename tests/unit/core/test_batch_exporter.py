"""批量导出单元测试."""

import io
from unittest.mock import patch

import pytest
from PIL import Image

from watermark_forge.core.batch_exporter import BatchExporter, ExportReport, ExportResult
from watermark_forge.models.layers import FrameLayer, PositionMode
from watermark_forge.models.source_image import SourceImage
from watermark_forge.utils import image_utils
from watermark_forge.utils.exceptions import (
    EmptyImageSetError,
    EmptyLayerSetError,
    EncodeError,
)


# ===================
# Fixtures
# ===================


@pytest.fixture
def exporter():
    """创建导出器."""
    return BatchExporter()


@pytest.fixture
def sources():
    """三张不同尺寸的源图片."""
    return [
        SourceImage("a.jpg", Image.new("RGBA", (100, 100), "white")),
        SourceImage("b.png", Image.new("RGBA", (400, 200), "white")),
        SourceImage("c.webp", Image.new("RGBA", (50, 300), "white")),
    ]


def decode(data: bytes) -> Image.Image:
    return Image.open(io.BytesIO(data))


# ===================
# 校验
# ===================


class TestValidation:
    """导出校验测试."""

    @pytest.mark.asyncio
    async def test_empty_sources_rejected(self, exporter, store):
        """测试没有源图片时拒绝且进度不变."""
        store.add(FrameLayer.create())
        progress = []
        with pytest.raises(EmptyImageSetError):
            await exporter.export([], store, on_progress=lambda *args: progress.append(args))
        assert progress == []
        assert exporter.progress == 0.0

    @pytest.mark.asyncio
    async def test_empty_layers_rejected(self, exporter, store, sources):
        """测试没有图层时拒绝."""
        with pytest.raises(EmptyLayerSetError):
            await exporter.export(sources, store)
        assert exporter.progress == 0.0

    @pytest.mark.asyncio
    async def test_rejection_does_not_sync(self, exporter, store):
        """测试拒绝时不修改图层."""
        frame = store.add(FrameLayer(x=10, y=10, width=20, height=20))
        with pytest.raises(EmptyImageSetError):
            await exporter.export([], store, reference_size=(100, 100))
        assert frame.rel_x is None


# ===================
# 导出
# ===================


class TestExport:
    """导出测试."""

    @pytest.mark.asyncio
    async def test_one_output_per_source(self, exporter, store, sources):
        """测试每张源图片产生一个以原文件名命名的输出."""
        store.add(FrameLayer.create())
        report = await exporter.export(sources, store)

        assert isinstance(report, ExportReport)
        assert report.filenames == ["a.jpg", "b.png", "c.webp"]
        assert report.succeeded == report.total == 3
        assert all(isinstance(r, ExportResult) for r in report.outputs)

    @pytest.mark.asyncio
    async def test_outputs_are_png_with_source_size(self, exporter, store, sources):
        """测试输出为 PNG 且尺寸与源图片一致."""
        store.add(FrameLayer.create())
        report = await exporter.export(sources, store)
        for source, result in zip(sources, report.outputs):
            image = decode(result.data)
            assert image.format == "PNG"
            assert image.size == source.size

    @pytest.mark.asyncio
    async def test_progress_strictly_increasing(self, exporter, store, sources):
        """测试进度严格递增并以 1.0 结束."""
        store.add(FrameLayer.create())
        progress = []
        await exporter.export(sources, store, on_progress=lambda p, done, total: progress.append((p, done, total)))

        values = [p for p, _, _ in progress]
        assert values == sorted(set(values))
        assert values[-1] == 1.0
        assert [done for _, done, _ in progress] == [1, 2, 3]
        assert exporter.progress == 1.0
        assert not exporter.is_exporting

    @pytest.mark.asyncio
    async def test_resolves_against_each_image(self, exporter, store, sources):
        """测试每张图片按自身尺寸解析相对坐标."""
        store.add(
            FrameLayer(
                x=0, y=0, width=10, height=10, border_width=2,
                rel_x=10, rel_y=10, rel_width=50, rel_height=50, rel_border_width=1,
                border_color="#ff0000",
            )
        )
        report = await exporter.export(sources, store)

        wide = decode(report.outputs[1].data).convert("RGBA")
        assert wide.getpixel((40, 100))[:3] == (255, 0, 0)
        assert wide.getpixel((5, 100)) == (255, 255, 255, 255)

    @pytest.mark.asyncio
    async def test_reference_sync_before_batch(self, exporter, store, sources):
        """测试导出前按参考图同步相对坐标."""
        frame = store.add(
            FrameLayer(x=50, y=50, width=300, height=200, position_mode=PositionMode.ABSOLUTE)
        )
        await exporter.export(sources, store, reference_size=(1000, 1000))
        assert frame.rel_x == pytest.approx(5)
        assert frame.rel_width == pytest.approx(30)

    @pytest.mark.asyncio
    async def test_encode_failure_continues(self, exporter, store, sources):
        """测试单张编码失败不中断其余图片."""
        store.add(FrameLayer.create())
        real_encode = image_utils.encode_image

        def flaky_encode(image, source=""):
            if source == "b.png":
                raise EncodeError(source, "磁盘已满")
            return real_encode(image, source)

        progress = []
        with patch.object(image_utils, "encode_image", flaky_encode):
            report = await exporter.export(sources, store, on_progress=lambda p, *_: progress.append(p))

        assert report.filenames == ["a.jpg", "c.webp"]
        assert len(report.failures) == 1
        assert report.failures[0].source == "b.png"
        assert progress[-1] == 1.0
        assert len(progress) == 3

    @pytest.mark.asyncio
    async def test_as_pairs(self, exporter, store, sources):
        """测试转换为 (文件名, 字节) 列表."""
        store.add(FrameLayer.create())
        report = await exporter.export(sources, store)
        pairs = report.as_pairs()
        assert [name for name, _ in pairs] == report.filenames
        assert all(isinstance(data, bytes) for _, data in pairs)
