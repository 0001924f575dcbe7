"""预设编解码.

把图层存储序列化为可移植的 JSON，以及从 JSON 恢复图层存储。

Logo 的图片资源以原始编码字节的 data URI 形式嵌入（"image" 字段），
因此不依赖原文件即可恢复。反序列化分两步：
    1. decode_preset: 同步重建三类图层，Logo 处于等待状态（只有 source_uri）
    2. restore_assets: 异步解码每个 Logo 的图片，解码完成前 Logo 不参与命中测试和合成
"""

from __future__ import annotations

import json
from typing import Any, Mapping

from pydantic import ValidationError as PydanticValidationError

from watermark_forge.models.layers import (
    FrameLayer,
    LayerStore,
    LogoAsset,
    LogoLayer,
    TextLayer,
)
from watermark_forge.utils.exceptions import DecodeError, StorageError
from watermark_forge.utils.image_utils import data_uri_to_bytes
from watermark_forge.utils.logger import setup_logger

logger = setup_logger(__name__)


# ===================
# 常量定义
# ===================

KEY_NAME = "name"
KEY_LOGOS = "logos"
KEY_TEXTS = "texts"
KEY_FRAMES = "frames"
KEY_LOGO_IMAGE = "image"


# ===================
# 序列化
# ===================


def encode_logo(logo: LogoLayer) -> dict[str, Any]:
    """序列化 Logo 图层，图片资源替换为 data URI."""
    data = logo.model_dump(mode="json")
    if logo.asset is not None:
        data[KEY_LOGO_IMAGE] = logo.asset.to_data_uri()
    else:
        data[KEY_LOGO_IMAGE] = logo.source_uri
    return data


def encode_store(store: LayerStore, name: str = "") -> dict[str, Any]:
    """把图层存储编码为预设字典.

    Args:
        store: 图层存储
        name: 预设名称

    Returns:
        {"name", "logos", "texts", "frames"}
    """
    return {
        KEY_NAME: name,
        KEY_LOGOS: [encode_logo(logo) for logo in store.logos],
        KEY_TEXTS: [text.model_dump(mode="json") for text in store.texts],
        KEY_FRAMES: [frame.model_dump(mode="json") for frame in store.frames],
    }


def serialize(store: LayerStore, name: str = "") -> str:
    """把图层存储序列化为 JSON 文本."""
    return json.dumps(encode_store(store, name), ensure_ascii=False)


# ===================
# 反序列化
# ===================


def decode_preset(payload: Mapping[str, Any]) -> LayerStore:
    """从预设字典重建图层存储（Logo 处于等待状态）.

    Args:
        payload: 预设字典

    Returns:
        新的图层存储

    Raises:
        StorageError: 预设结构无效
    """
    store = LayerStore()
    try:
        for item in payload.get(KEY_FRAMES) or []:
            store.add(FrameLayer.model_validate(item))
        for item in payload.get(KEY_TEXTS) or []:
            store.add(TextLayer.model_validate(item))
        for item in payload.get(KEY_LOGOS) or []:
            fields = dict(item)
            fields["source_uri"] = fields.pop(KEY_LOGO_IMAGE, None)
            fields.pop("asset", None)
            store.add(LogoLayer.model_validate(fields))
    except (PydanticValidationError, TypeError, AttributeError) as e:
        raise StorageError(f"预设数据无效: {e}") from e

    logger.debug(f"预设已解析: {store}")
    return store


async def restore_assets(store: LayerStore) -> list[DecodeError]:
    """解码所有等待中的 Logo 图片.

    解码失败的 Logo 从存储中移除，其余图层不受影响。

    Returns:
        解码错误列表
    """
    errors: list[DecodeError] = []
    for logo in list(store.logos):
        if logo.is_ready:
            continue
        try:
            if not logo.source_uri:
                raise DecodeError(f"logo {logo.id}", "缺少图片数据")
            data = data_uri_to_bytes(logo.source_uri)
            logo.asset = await LogoAsset.from_bytes_async(data, f"logo {logo.id}")
            logo.source_uri = None
        except DecodeError as e:
            logger.error(f"Logo 图片恢复失败，已移除: {logo.id}")
            store.remove(logo.id)
            errors.append(e)
    return errors


async def deserialize(text: str) -> LayerStore:
    """从 JSON 文本恢复图层存储，并等待所有 Logo 图片解码完成.

    Raises:
        StorageError: 文本不是有效的预设
    """
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as e:
        raise StorageError(f"预设不是有效的 JSON: {e}") from e
    if not isinstance(payload, dict):
        raise StorageError("预设必须是 JSON 对象")

    store = decode_preset(payload)
    await restore_assets(store)
    return store
