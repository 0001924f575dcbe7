"""服务层模块."""

from watermark_forge.services.archive import bundle_outputs, write_archive
from watermark_forge.services.preset_codec import (
    decode_preset,
    deserialize,
    encode_store,
    restore_assets,
    serialize,
)
from watermark_forge.services.preset_store import (
    JsonFileStore,
    KeyValueStore,
    MemoryStore,
    PresetManager,
)

__all__ = [
    # 打包
    "bundle_outputs",
    "write_archive",
    # 预设编解码
    "decode_preset",
    "deserialize",
    "encode_store",
    "restore_assets",
    "serialize",
    # 预设存储
    "JsonFileStore",
    "KeyValueStore",
    "MemoryStore",
    "PresetManager",
]
