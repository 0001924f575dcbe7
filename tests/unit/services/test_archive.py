"""导出打包单元测试."""

import io
import tempfile
import zipfile
from pathlib import Path

from watermark_forge.services.archive import bundle_outputs, write_archive


class TestBundleOutputs:
    """打包测试."""

    def test_entries_under_folder(self):
        """测试条目位于固定目录下."""
        data = bundle_outputs([("a.jpg", b"1"), ("b.png", b"22")])
        with zipfile.ZipFile(io.BytesIO(data)) as archive:
            assert archive.namelist() == ["watermarked-images/a.jpg", "watermarked-images/b.png"]
            assert archive.read("watermarked-images/b.png") == b"22"

    def test_duplicate_name_last_wins(self):
        """测试同名条目以后出现的为准."""
        data = bundle_outputs([("a.jpg", b"old"), ("a.jpg", b"new")])
        with zipfile.ZipFile(io.BytesIO(data)) as archive:
            assert archive.namelist() == ["watermarked-images/a.jpg"]
            assert archive.read("watermarked-images/a.jpg") == b"new"

    def test_empty_folder(self):
        """测试不使用目录."""
        data = bundle_outputs([("a.jpg", b"1")], folder="")
        with zipfile.ZipFile(io.BytesIO(data)) as archive:
            assert archive.namelist() == ["a.jpg"]

    def test_write_archive(self):
        """测试写入文件."""
        with tempfile.TemporaryDirectory() as d:
            path = write_archive(Path(d) / "out" / "result.zip", [("a.jpg", b"1")])
            assert path.exists()
            with zipfile.ZipFile(path) as archive:
                assert archive.namelist() == ["watermarked-images/a.jpg"]
