"""预设存储服务.

预设以 JSON 列表的形式保存在键值存储的一个键（默认 watermarkPresets）下，
键不存在时视为空列表。

Features:
    - 键值存储：文件存储（JsonFileStore）与内存存储（MemoryStore）
    - 保存预设（追加，不去重）
    - 预设名称列表
    - 按名称或 1 起始的序号加载预设
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Optional, Protocol, Union

from watermark_forge.models.layers import LayerStore
from watermark_forge.services.preset_codec import (
    KEY_NAME,
    decode_preset,
    encode_store,
    restore_assets,
)
from watermark_forge.utils.constants import PRESETS_FILE, PRESETS_KEY
from watermark_forge.utils.exceptions import (
    EmptyPresetNameError,
    NoPresetsError,
    PresetNotFoundError,
    StorageError,
)
from watermark_forge.utils.logger import setup_logger

logger = setup_logger(__name__)


# ===================
# 键值存储
# ===================


class KeyValueStore(Protocol):
    """文本键值存储接口."""

    def get(self, key: str) -> Optional[str]:
        ...

    def set(self, key: str, value: str) -> None:
        ...


class MemoryStore:
    """内存键值存储."""

    def __init__(self, initial: Optional[dict[str, str]] = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value


class JsonFileStore:
    """以单个 JSON 文件保存的键值存储.

    文件内容为 {key: text} 对象，每次写入整体覆盖。
    """

    def __init__(self, path: Union[str, Path] = PRESETS_FILE) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def _read_all(self) -> dict[str, str]:
        if not self._path.exists():
            return {}
        try:
            with open(self._path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise StorageError(f"读取预设文件失败: {self._path} ({e})") from e
        if not isinstance(data, dict):
            raise StorageError(f"预设文件格式无效: {self._path}")
        return data

    def get(self, key: str) -> Optional[str]:
        return self._read_all().get(key)

    def set(self, key: str, value: str) -> None:
        data = self._read_all()
        data[key] = value
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with open(self._path, "w", encoding="utf-8") as f:
                json.dump(data, f, ensure_ascii=False, indent=2)
        except OSError as e:
            raise StorageError(f"写入预设文件失败: {self._path} ({e})") from e


# ===================
# 预设管理
# ===================


class PresetManager:
    """预设管理器.

    Example:
        >>> manager = PresetManager(MemoryStore())
        >>> manager.save("品牌A", store)
        >>> manager.list_names()
        ['品牌A']
        >>> restored = await manager.load("1")
    """

    def __init__(self, store: Optional[KeyValueStore] = None, key: str = PRESETS_KEY) -> None:
        self._store: KeyValueStore = store if store is not None else JsonFileStore()
        self._key = key

    @property
    def key(self) -> str:
        return self._key

    def _read_presets(self) -> list[dict[str, Any]]:
        text = self._store.get(self._key)
        if text is None:
            return []
        try:
            presets = json.loads(text)
        except json.JSONDecodeError as e:
            raise StorageError(f"预设列表无法解析: {e}") from e
        if not isinstance(presets, list):
            raise StorageError("预设列表格式无效")
        return presets

    def list_names(self) -> list[str]:
        """已保存预设的名称（按保存顺序）."""
        return [str(preset.get(KEY_NAME, "")) for preset in self._read_presets()]

    def save(self, name: str, store: LayerStore) -> dict[str, Any]:
        """保存当前图层为新预设.

        Args:
            name: 预设名称
            store: 图层存储

        Returns:
            保存的预设字典

        Raises:
            EmptyPresetNameError: 名称为空或只有空白（不写入存储）
        """
        if not name or not name.strip():
            raise EmptyPresetNameError()

        presets = self._read_presets()
        preset = encode_store(store, name)
        presets.append(preset)
        self._store.set(self._key, json.dumps(presets, ensure_ascii=False))

        logger.info(f"预设已保存: {name} ({store.layer_count} 个图层)")
        return preset

    def find(self, query: str) -> dict[str, Any]:
        """按名称或序号查找预设.

        先按名称精确匹配（同名时取最早保存的），再按 1 起始的序号匹配。

        Raises:
            NoPresetsError: 没有已保存的预设
            PresetNotFoundError: 名称和序号都不匹配
        """
        presets = self._read_presets()
        if not presets:
            raise NoPresetsError()

        for preset in presets:
            if preset.get(KEY_NAME) == query:
                return preset

        text = query.strip()
        if text.isdigit():
            index = int(text) - 1
            if 0 <= index < len(presets):
                return presets[index]

        raise PresetNotFoundError(query)

    async def load(self, query: str) -> LayerStore:
        """加载预设为新的图层存储，并等待 Logo 图片解码完成.

        Raises:
            NoPresetsError: 没有已保存的预设
            PresetNotFoundError: 预设不存在
            StorageError: 预设数据无效
        """
        preset = self.find(query)
        store = decode_preset(preset)
        errors = await restore_assets(store)
        logger.info(
            f"预设已加载: {preset.get(KEY_NAME)} ({store.layer_count} 个图层"
            + (f", {len(errors)} 个 Logo 恢复失败)" if errors else ")")
        )
        return store
