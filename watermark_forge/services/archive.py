"""导出打包.

把批量导出的 (文件名, 字节) 打包为一个 ZIP，条目位于固定目录下。
同名条目以后出现的为准。
"""

from __future__ import annotations

import io
import zipfile
from pathlib import Path
from typing import Iterable, Union

from watermark_forge.utils.constants import EXPORT_FOLDER
from watermark_forge.utils.logger import setup_logger

logger = setup_logger(__name__)


def bundle_outputs(
    results: Iterable[tuple[str, bytes]],
    folder: str = EXPORT_FOLDER,
) -> bytes:
    """打包导出结果.

    Args:
        results: (文件名, 字节) 序列
        folder: 压缩包内目录名

    Returns:
        ZIP 字节
    """
    entries: dict[str, bytes] = {}
    for filename, data in results:
        name = Path(filename).name
        entries[f"{folder}/{name}" if folder else name] = data

    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as archive:
        for name, data in entries.items():
            archive.writestr(name, data)

    logger.debug(f"已打包 {len(entries)} 个文件")
    return buffer.getvalue()


def write_archive(
    path: Union[str, Path],
    results: Iterable[tuple[str, bytes]],
    folder: str = EXPORT_FOLDER,
) -> Path:
    """打包并写入文件.

    Returns:
        写入的文件路径
    """
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_bytes(bundle_outputs(results, folder))
    logger.info(f"压缩包已保存: {target}")
    return target
