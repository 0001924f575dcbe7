"""预设存储与编解码单元测试."""

import json
import tempfile
from pathlib import Path

import pytest

from watermark_forge.models.layers import (
    FrameLayer,
    LayerStore,
    LogoLayer,
    PositionMode,
    TextLayer,
)
from watermark_forge.services.preset_codec import (
    decode_preset,
    deserialize,
    encode_store,
    restore_assets,
    serialize,
)
from watermark_forge.services.preset_store import JsonFileStore, MemoryStore, PresetManager
from watermark_forge.utils.constants import PRESETS_KEY
from watermark_forge.utils.exceptions import (
    EmptyPresetNameError,
    NoPresetsError,
    PresetNotFoundError,
    StorageError,
)


# ===================
# Fixtures
# ===================


@pytest.fixture
def populated_store(store, logo_asset):
    """包含三类图层的存储."""
    store.add(FrameLayer.create(border_color="#ff0000", opacity=0.5))
    store.add(FrameLayer(x=1, y=2, width=30, height=40, position_mode=PositionMode.ABSOLUTE))
    store.add(LogoLayer.create(logo_asset, width=80))
    store.add(TextLayer.create(text="水印", color="#00ff00"))
    return store


@pytest.fixture
def temp_dir():
    """临时目录."""
    with tempfile.TemporaryDirectory() as d:
        yield Path(d)


# ===================
# 编解码
# ===================


class TestPresetCodec:
    """预设编解码测试."""

    def test_encode_structure(self, populated_store):
        """测试预设结构."""
        data = encode_store(populated_store, "测试")
        assert data["name"] == "测试"
        assert len(data["frames"]) == 2
        assert len(data["logos"]) == 1
        assert len(data["texts"]) == 1
        assert data["logos"][0]["image"].startswith("data:image/png;base64,")
        assert "asset" not in data["logos"][0]

    def test_decoded_logos_are_pending(self, populated_store):
        """测试解码后的 Logo 在图片恢复前处于等待状态."""
        restored = decode_preset(json.loads(serialize(populated_store)))
        assert restored.layer_count == 4
        assert not restored.logos[0].is_ready
        assert restored.ready_logos() == []

    @pytest.mark.asyncio
    async def test_round_trip(self, populated_store):
        """测试序列化后反序列化得到等价的图层存储."""
        restored = await deserialize(serialize(populated_store, "round"))

        assert restored.layer_count == populated_store.layer_count
        for original, loaded in zip(populated_store.iter_all(), restored.iter_all()):
            assert type(loaded) is type(original)
            assert loaded.model_dump() == original.model_dump()

        original_logo = populated_store.logos[0]
        loaded_logo = restored.logos[0]
        assert loaded_logo.is_ready
        assert loaded_logo.asset.raster.tobytes() == original_logo.asset.raster.tobytes()
        assert loaded_logo.height == pytest.approx(original_logo.height)

    @pytest.mark.asyncio
    async def test_broken_logo_removed(self, store):
        """测试图片无法解码的 Logo 被移除，其余图层保留."""
        store.add(LogoLayer(source_uri="data:image/png;base64,bm90IGFuIGltYWdl"))
        store.add(TextLayer.create())
        errors = await restore_assets(store)
        assert len(errors) == 1
        assert store.logos == []
        assert len(store.texts) == 1

    @pytest.mark.asyncio
    async def test_invalid_json(self):
        """测试无效 JSON."""
        with pytest.raises(StorageError):
            await deserialize("{not json")

    def test_invalid_layer_data(self):
        """测试无效的图层数据."""
        with pytest.raises(StorageError):
            decode_preset({"frames": [{"width": -5}]})


# ===================
# 预设管理
# ===================


class TestPresetManager:
    """预设管理器测试."""

    def test_save_appends(self, preset_manager, populated_store):
        """测试保存追加到列表."""
        preset_manager.save("A", populated_store)
        preset_manager.save("B", populated_store)
        assert preset_manager.list_names() == ["A", "B"]

    @pytest.mark.parametrize("name", ["", "   "])
    def test_empty_name_rejected_without_write(self, name, populated_store):
        """测试空名称被拒绝且不写入存储."""
        backend = MemoryStore()
        manager = PresetManager(backend)
        with pytest.raises(EmptyPresetNameError):
            manager.save(name, populated_store)
        assert backend.get(PRESETS_KEY) is None

    @pytest.mark.asyncio
    async def test_load_without_presets(self, preset_manager):
        """测试没有预设时加载被拒绝."""
        with pytest.raises(NoPresetsError):
            await preset_manager.load("1")

    @pytest.mark.asyncio
    async def test_load_not_found(self, preset_manager, populated_store):
        """测试名称和序号都不匹配时被拒绝."""
        preset_manager.save("A", populated_store)
        for query in ("B", "0", "2", "-1"):
            with pytest.raises(PresetNotFoundError):
                await preset_manager.load(query)

    @pytest.mark.asyncio
    async def test_load_by_name_then_index(self, preset_manager, populated_store):
        """测试先按名称匹配，再按序号匹配."""
        single = LayerStore()
        single.add(TextLayer.create(text="only"))
        preset_manager.save("2", single)
        preset_manager.save("second", populated_store)

        by_name = await preset_manager.load("2")
        assert by_name.layer_count == 1

        by_index = await preset_manager.load("1")
        assert by_index.layer_count == 1

        second = await preset_manager.load("second")
        assert second.layer_count == 4

    @pytest.mark.asyncio
    async def test_load_reproduces_store(self, preset_manager, populated_store):
        """测试保存后加载得到等价的图层存储."""
        preset_manager.save("brand", populated_store)
        loaded = await preset_manager.load("brand")
        assert [l.model_dump() for l in loaded.iter_all()] == [
            l.model_dump() for l in populated_store.iter_all()
        ]
        assert loaded.logos[0].asset.raster.tobytes() == populated_store.logos[0].asset.raster.tobytes()

    def test_absent_key_is_empty(self, preset_manager):
        """测试键不存在时视为空列表."""
        assert preset_manager.list_names() == []

    def test_corrupt_list(self):
        """测试存储内容不是列表."""
        manager = PresetManager(MemoryStore({PRESETS_KEY: "{}"}))
        with pytest.raises(StorageError):
            manager.list_names()


class TestJsonFileStore:
    """文件存储测试."""

    def test_get_missing_file(self, temp_dir):
        """测试文件不存在时返回 None."""
        assert JsonFileStore(temp_dir / "presets.json").get("k") is None

    def test_set_and_get(self, temp_dir):
        """测试写入后读取."""
        path = temp_dir / "sub" / "presets.json"
        store = JsonFileStore(path)
        store.set("k", "v")
        store.set("other", "w")
        assert JsonFileStore(path).get("k") == "v"
        assert json.loads(path.read_text(encoding="utf-8")) == {"k": "v", "other": "w"}

    def test_corrupt_file(self, temp_dir):
        """测试文件内容损坏."""
        path = temp_dir / "presets.json"
        path.write_text("not json", encoding="utf-8")
        with pytest.raises(StorageError):
            JsonFileStore(path).get("k")

    @pytest.mark.asyncio
    async def test_manager_with_file_store(self, temp_dir, populated_store):
        """测试预设管理器使用文件存储."""
        manager = PresetManager(JsonFileStore(temp_dir / "presets.json"))
        manager.save("file", populated_store)
        loaded = await PresetManager(JsonFileStore(temp_dir / "presets.json")).load("file")
        assert loaded.layer_count == 4
