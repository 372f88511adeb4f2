"""网络工具 — URL 校验与下载"""

from __future__ import annotations

import logging
import shutil
import urllib.error
import urllib.request
from pathlib import Path
from urllib.parse import urlparse

from keg.core.exceptions import DownloadError, ValidationError

logger = logging.getLogger(__name__)

_ALLOWED_SCHEMES = frozenset(("http", "https"))


def validate_url_scheme(url: str, *, context: str = "") -> None:
    """校验 URL 仅使用 http/https，防止 file:// 等非预期协议访问

    Raises:
        ValidationError: URL scheme 不在白名单内或缺少主机名
    """
    parsed = urlparse(url)
    label = f" ({context})" if context else ""
    if parsed.scheme not in _ALLOWED_SCHEMES:
        raise ValidationError(
            f"不允许的 URL 协议 '{parsed.scheme}'{label}，"
            f"仅支持 http/https: {url}"
        )
    if not parsed.netloc:
        raise ValidationError(f"URL 缺少主机名{label}: {url}")


def url_filename(url: str) -> str:
    """取 URL 路径最后一段作为文件名"""
    name = urlparse(url).path.rstrip("/").split("/")[-1]
    if not name:
        raise ValidationError(f"无法从 URL 解析文件名: {url}")
    return name


def download(url: str, dest: Path, *, timeout: float = 60.0) -> Path:
    """下载 URL 到 dest，失败时删除残留文件

    Raises:
        DownloadError: HTTP 错误、网络错误或写盘失败
    """
    validate_url_scheme(url, context="download")
    dest.parent.mkdir(parents=True, exist_ok=True)
    partial = dest.with_name(dest.name + ".part")
    logger.info("  下载: %s", url)
    try:
        with urllib.request.urlopen(url, timeout=timeout) as resp:  # nosec B310
            with open(partial, "wb") as f:
                shutil.copyfileobj(resp, f)
        partial.replace(dest)
    except (urllib.error.HTTPError, urllib.error.URLError, OSError) as e:
        partial.unlink(missing_ok=True)
        raise DownloadError(f"下载失败: {url} - {e}") from e
    logger.info("  已保存: %s", dest)
    return dest
