"""配方数据模型

数据类:
- InstallAction: 安装动作（把制品中的哪个文件放到哪个目标目录）
- TestAction: 安装后冒烟测试
- PackageDescriptor: 配方本体，发布后不可变；新版本 = 新的 version + checksum
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import PurePosixPath
from urllib.parse import urlparse

from keg.core.exceptions import ValidationError

CHECKSUM_ALGORITHMS = frozenset(("sha256",))
SHA256_HEX_LENGTH = 64
INSTALL_TARGETS = frozenset(("bin",))
VERSION_PLACEHOLDER = "{version}"

_NAME_RE = re.compile(r"^[a-z0-9][a-z0-9._+-]*$")
_HEX_RE = re.compile(r"^[0-9a-f]+$")
_VERSION_RE = re.compile(r"^\d+(\.\d+)*([-+][0-9A-Za-z.-]+)?$")
# URL 路径段里的版本号，如 /download/v0.1.0/
_URL_VERSION_SEGMENT_RE = re.compile(r"^v?(\d+(?:\.\d+)+(?:[-+][0-9A-Za-z.-]+)?)$")


@dataclass(frozen=True)
class InstallAction:
    """把解压目录中的 source_file_name 复制到 target_directory"""

    source_file_name: str
    target_directory: str = "bin"

    @property
    def installed_name(self) -> str:
        return PurePosixPath(self.source_file_name).name


@dataclass(frozen=True)
class TestAction:
    """冒烟测试: command[0] 是已安装文件名，按 bin 目录解析"""

    __test__ = False

    command: tuple[str, ...]
    expected_exit_code: int = 0


@dataclass(frozen=True)
class PackageDescriptor:
    """配方: 身份 + 版本化来源 + 完整性指纹 + 安装/测试动作"""

    name: str
    description: str
    homepage: str
    url: str
    version: str
    checksum: str
    install: InstallAction
    test: TestAction
    checksum_algorithm: str = "sha256"
    source_path: str = field(default="", compare=False)

    @property
    def is_templated(self) -> bool:
        return VERSION_PLACEHOLDER in self.url

    def resolve_url(self, version: str | None = None) -> str:
        """计算下载地址

        模板 URL 替换 {version}；字面量 URL 原样返回，
        此时不允许指定与 URL 不一致的版本。
        """
        ver = version or self.version
        if self.is_templated:
            return self.url.replace(VERSION_PLACEHOLDER, ver)
        if ver != self.version:
            embedded = url_embedded_versions(self.url)
            if embedded and ver not in embedded:
                raise ValidationError(
                    f"配方 '{self.name}' 的 URL 固定为版本 "
                    f"{', '.join(embedded)}，无法解析版本 {ver}"
                )
        return self.url


def url_embedded_versions(url: str) -> list[str]:
    """提取 URL 路径中形如 v1.2.3 / 1.2.3 的版本段（去掉前缀 v）"""
    versions = []
    for segment in urlparse(url).path.split("/"):
        m = _URL_VERSION_SEGMENT_RE.match(segment)
        if m:
            versions.append(m.group(1))
    return versions


def validate_checksum(value: str, algorithm: str = "sha256") -> list[str]:
    """校验摘要算法与格式，返回问题列表"""
    if algorithm not in CHECKSUM_ALGORITHMS:
        return [f"不支持的校验算法: {algorithm}"]
    problems = []
    if len(value) != SHA256_HEX_LENGTH:
        problems.append(
            f"sha256 长度应为 {SHA256_HEX_LENGTH} 个十六进制字符，实际 {len(value)}"
        )
    if value and not _HEX_RE.match(value.lower()):
        problems.append("sha256 包含非十六进制字符")
    return problems


def _validate_url(url: str, label: str) -> list[str]:
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https"):
        return [f"{label} 必须是 http/https 地址: {url!r}"]
    if not parsed.netloc:
        return [f"{label} 缺少主机名: {url!r}"]
    return []


def _validate_relative_path(path: str) -> list[str]:
    p = PurePosixPath(path)
    if not path or p.is_absolute() or ".." in p.parts or "\\" in path:
        return [f"install.file 必须是制品内的相对路径: {path!r}"]
    return []


def validate_descriptor(desc: PackageDescriptor) -> list[str]:
    """离线校验配方，返回问题列表（空列表表示通过）"""
    problems: list[str] = []

    if not _NAME_RE.match(desc.name):
        problems.append(f"name 不合法: {desc.name!r}")
    if not desc.description.strip():
        problems.append("desc 不能为空")
    problems += _validate_url(desc.homepage, "homepage")
    problems += _validate_url(desc.url.replace(VERSION_PLACEHOLDER, desc.version), "url")

    if not _VERSION_RE.match(desc.version):
        problems.append(f"version 格式不合法: {desc.version!r}")
    elif not desc.is_templated:
        embedded = url_embedded_versions(desc.url)
        if embedded and desc.version not in embedded:
            problems.append(
                f"url 中的版本 {', '.join(embedded)} 与 version {desc.version} 不一致"
            )

    problems += validate_checksum(desc.checksum, desc.checksum_algorithm)

    problems += _validate_relative_path(desc.install.source_file_name)
    if desc.install.target_directory not in INSTALL_TARGETS:
        problems.append(
            f"install.target 不支持: {desc.install.target_directory!r}，"
            f"可选: {sorted(INSTALL_TARGETS)}"
        )

    if not desc.test.command:
        problems.append("test.command 不能为空")
    elif desc.test.command[0] != desc.install.installed_name:
        problems.append(
            f"test.command 必须调用已安装的 {desc.install.installed_name}，"
            f"实际: {desc.test.command[0]!r}"
        )

    return problems


def check_descriptor(desc: PackageDescriptor) -> PackageDescriptor:
    """校验配方，有问题时抛 ValidationError"""
    problems = validate_descriptor(desc)
    if problems:
        raise ValidationError(
            f"配方 '{desc.name}' 校验失败: {'; '.join(problems)}",
            details=problems,
        )
    return desc
