"""制品拉取器

职责:
- 按配方解析下载地址
- 下载到缓存目录 <cache_dir>/<name>/<version>/<文件名>
- 校验 sha256，不一致时删除缓存并抛 IntegrityError

缓存命中同样要重新校验，被篡改或损坏的缓存不会被安装。
"""

from __future__ import annotations

import hashlib
import logging
from pathlib import Path

from keg.core.exceptions import IntegrityError
from keg.core.formula.models import PackageDescriptor
from keg.utils.net import download, url_filename, validate_url_scheme

logger = logging.getLogger(__name__)

_CHUNK_SIZE = 64 * 1024


def file_sha256(path: Path) -> str:
    sha256 = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(_CHUNK_SIZE), b""):
            sha256.update(chunk)
    return sha256.hexdigest()


class ArchiveFetcher:
    """制品拉取器 - 缓存优先 + 远程下载 + 完整性校验"""

    def __init__(self, cache_dir: Path, timeout: float = 60.0) -> None:
        self.cache_dir = cache_dir
        self.timeout = timeout

    def cache_path(self, desc: PackageDescriptor, url: str) -> Path:
        return self.cache_dir / desc.name / desc.version / url_filename(url)

    def resolve(self, desc: PackageDescriptor) -> str:
        """Resolve: 计算并校验下载地址"""
        url = desc.resolve_url()
        validate_url_scheme(url, context=f"formula {desc.name}")
        return url

    def download(self, desc: PackageDescriptor, url: str) -> Path:
        """下载制品到缓存，缓存已存在时跳过网络"""
        dest = self.cache_path(desc, url)
        if dest.is_file():
            logger.info("  缓存命中: %s", dest)
            return dest
        return download(url, dest, timeout=self.timeout)

    def verify(self, desc: PackageDescriptor, archive: Path) -> str:
        """校验制品摘要，返回实际摘要

        Raises:
            IntegrityError: 摘要不一致（已删除该缓存文件）
        """
        actual = file_sha256(archive)
        expected = desc.checksum.lower()
        if actual != expected:
            archive.unlink(missing_ok=True)
            raise IntegrityError(
                f"校验和不匹配 {archive.name}: 期望 {expected}, 实际 {actual}",
                expected=expected, actual=actual,
            )
        logger.info("  校验和通过: %s", archive.name)
        return actual

    def fetch(self, desc: PackageDescriptor) -> Path:
        """Fetch & Verify: 下载并校验，返回缓存中的制品路径"""
        url = self.resolve(desc)
        archive = self.download(desc, url)
        self.verify(desc, archive)
        return archive
