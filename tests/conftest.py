"""测试共享 fixture — 制品构造 + 配方构造 + mock 执行器"""

from __future__ import annotations

import hashlib
import io
import tarfile
import zipfile
from pathlib import Path

import pytest

from keg.core.config import reset_config
from keg.utils.logger import reset_logging
from keg.core.formula.models import InstallAction, PackageDescriptor, TestAction
from keg.utils.shell import CommandResult

GETAWSLOG_URL = (
    "https://github.com/masahide/getawslog/releases/download/"
    "v0.1.0/getawslog_Darwin_x86_64.tar.gz"
)

# 可在 Linux/macOS 上直接执行的假二进制
OK_SCRIPT = b"#!/bin/sh\necho getawslog 0.1.0\nexit 0\n"
FAIL_SCRIPT = b"#!/bin/sh\necho boom >&2\nexit 3\n"


def build_tar(path: Path, files: dict[str, bytes], mode: int = 0o755) -> Path:
    """构造 tar.gz 制品"""
    path.parent.mkdir(parents=True, exist_ok=True)
    with tarfile.open(path, "w:gz") as tf:
        for name, data in files.items():
            info = tarfile.TarInfo(name)
            info.size = len(data)
            info.mode = mode
            tf.addfile(info, io.BytesIO(data))
    return path


def build_zip(path: Path, files: dict[str, bytes]) -> Path:
    """构造 zip 制品"""
    path.parent.mkdir(parents=True, exist_ok=True)
    with zipfile.ZipFile(path, "w") as zf:
        for name, data in files.items():
            info = zipfile.ZipInfo(name)
            info.external_attr = 0o755 << 16
            zf.writestr(info, data)
    return path


def sha256_of(path: Path) -> str:
    return hashlib.sha256(path.read_bytes()).hexdigest()


def make_descriptor(checksum: str, **overrides: object) -> PackageDescriptor:
    """按 getawslog 配方构造描述符，checksum 由测试制品决定"""
    fields: dict[str, object] = {
        "name": "getawslog",
        "description": "AWS assume role credential wrapper",
        "homepage": "https://github.com/masahide/getawslog",
        "url": GETAWSLOG_URL,
        "version": "0.1.0",
        "checksum": checksum,
        "install": InstallAction(source_file_name="getawslog"),
        "test": TestAction(command=("getawslog", "-v")),
    }
    fields.update(overrides)
    return PackageDescriptor(**fields)  # type: ignore[arg-type]


def seed_cache(cache_dir: Path, archive: Path, url: str = GETAWSLOG_URL) -> Path:
    """把制品放进缓存，模拟已下载"""
    filename = url.rstrip("/").split("/")[-1]
    dest = cache_dir / "getawslog" / "0.1.0" / filename
    dest.parent.mkdir(parents=True, exist_ok=True)
    dest.write_bytes(archive.read_bytes())
    return dest


class FakeExecutor:
    """记录调用并返回预设结果的命令执行器"""

    def __init__(self, returncode: int = 0, stdout: str = "", stderr: str = "") -> None:
        self.result = CommandResult(returncode=returncode, stdout=stdout, stderr=stderr)
        self.calls: list[list[str]] = []

    def execute(
        self,
        argv: list[str],
        *,
        cwd: str | None = None,
        env: dict[str, str] | None = None,
        timeout: float | None = None,
    ) -> CommandResult:
        self.calls.append(list(argv))
        return self.result


@pytest.fixture(autouse=True)
def _clean_globals():
    reset_config()
    yield
    reset_config()
    reset_logging()


@pytest.fixture()
def archive(tmp_path: Path) -> Path:
    """含可执行 getawslog 的 tar.gz 制品"""
    return build_tar(
        tmp_path / "src" / "getawslog_Darwin_x86_64.tar.gz",
        {"getawslog": OK_SCRIPT, "README.md": b"readme\n"},
    )


@pytest.fixture()
def fake_executor() -> FakeExecutor:
    return FakeExecutor()


@pytest.fixture()
def descriptor_for(archive: Path):
    """按制品摘要构造描述符的工厂"""

    def _make(path: Path | None = None, **overrides: object) -> PackageDescriptor:
        return make_descriptor(sha256_of(path or archive), **overrides)

    return _make


@pytest.fixture()
def helpers():
    """制品构造工具集合"""

    class _Helpers:
        tar = staticmethod(build_tar)
        zip = staticmethod(build_zip)
        sha256 = staticmethod(sha256_of)
        descriptor = staticmethod(make_descriptor)
        seed_cache = staticmethod(seed_cache)
        ok_script = OK_SCRIPT
        fail_script = FAIL_SCRIPT
        url = GETAWSLOG_URL
        executor = FakeExecutor

    return _Helpers
