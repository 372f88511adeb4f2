"""制品解压、安装与冒烟测试

- extract_archive: 解压 tar / zip 到暂存目录，拒绝越界路径
- install_file: 把声明的文件原子复制到 bin 目录
- run_smoke_test: 执行安装后的二进制，校验退出码
"""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
import tarfile
import tempfile
import zipfile
from pathlib import Path

from keg.core.exceptions import (
    ExtractError,
    InstallError,
    MissingFileError,
    TestFailureError,
    ValidationError,
)
from keg.core.formula.models import InstallAction, TestAction
from keg.utils.shell import CommandExecutor, CommandResult, get_executor

logger = logging.getLogger(__name__)

TAR_SUFFIXES = (".tar.gz", ".tgz", ".tar.bz2", ".tbz2", ".tar.xz", ".txz", ".tar")
ZIP_SUFFIXES = (".zip",)
EXECUTABLE_MODE = 0o755
_OUTPUT_TAIL = 500


def _is_within(base: Path, target: Path) -> bool:
    try:
        target.resolve().relative_to(base.resolve())
    except ValueError:
        return False
    return True


def _extract_zip(archive: Path, dest: Path) -> None:
    with zipfile.ZipFile(archive) as zf:
        for member in zf.infolist():
            if not _is_within(dest, dest / member.filename):
                raise ValidationError(f"压缩包成员越界: {member.filename}")
        zf.extractall(path=str(dest))  # noqa: S202
        # zipfile 不保留权限位，按 external_attr 恢复
        for member in zf.infolist():
            mode = (member.external_attr >> 16) & 0o777
            if mode and not member.is_dir():
                os.chmod(dest / member.filename, mode)


def extract_archive(archive: Path, dest: Path) -> Path:
    """解压制品到 dest，返回 dest

    Raises:
        ExtractError: 格式不支持或压缩包损坏
        ValidationError: 成员路径越界
    """
    name = archive.name.lower()
    dest.mkdir(parents=True, exist_ok=True)
    try:
        if name.endswith(TAR_SUFFIXES):
            with tarfile.open(archive) as tf:
                tf.extractall(path=str(dest), filter="data")  # noqa: S202
        elif name.endswith(ZIP_SUFFIXES):
            _extract_zip(archive, dest)
        else:
            raise ExtractError(f"不支持的制品格式: {archive.name}")
    except tarfile.FilterError as e:
        raise ValidationError(f"压缩包成员越界: {e}") from e
    except (tarfile.TarError, zipfile.BadZipFile, OSError) as e:
        raise ExtractError(f"解压失败 {archive.name}: {e}") from e
    logger.info("  已解压: %s -> %s", archive.name, dest)
    return dest


def _content_root(staging: Path) -> Path:
    """压缩包只含单个顶层目录时，进入该目录"""
    entries = [p for p in staging.iterdir() if not p.name.startswith(".")]
    if len(entries) == 1 and entries[0].is_dir():
        return entries[0]
    return staging


def install_file(action: InstallAction, staging: Path, bin_dir: Path) -> Path:
    """Install: 复制 action.source_file_name 到 bin_dir，返回安装路径

    写入同目录临时文件后 os.replace，重复安装结果逐字节一致。

    Raises:
        MissingFileError: 解压目录中没有该文件
        InstallError: bin_dir 不可写或目标路径被目录占用
    """
    src = None
    for root in dict.fromkeys((staging, _content_root(staging))):
        candidate = root / action.source_file_name
        if candidate.is_file() and _is_within(staging, candidate):
            src = candidate
            break
    if src is None:
        raise MissingFileError(
            f"制品中不存在文件 '{action.source_file_name}'"
        )

    target = bin_dir / action.installed_name
    try:
        bin_dir.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=str(bin_dir), prefix=f".{target.name}.")
    except OSError as e:
        raise InstallError(f"无法写入安装目录 {bin_dir}: {e}") from e
    os.close(fd)
    try:
        shutil.copyfile(src, tmp)
        os.chmod(tmp, EXECUTABLE_MODE)
        os.replace(tmp, target)
    except OSError as e:
        Path(tmp).unlink(missing_ok=True)
        raise InstallError(f"安装 {target} 失败: {e}") from e
    logger.info("  已安装: %s", target)
    return target


def run_smoke_test(
    test: TestAction,
    bin_dir: Path,
    *,
    executor: CommandExecutor | None = None,
    timeout: float | None = None,
) -> CommandResult:
    """Test: 以 bin_dir 下的已安装文件执行 test.command

    Raises:
        TestFailureError: 退出码不等于 expected_exit_code、超时或无法启动
    """
    executor = executor or get_executor()
    argv = [str(bin_dir / test.command[0]), *test.command[1:]]
    logger.info("  冒烟测试: %s", " ".join(argv))
    try:
        result = executor.execute(argv, cwd=str(bin_dir), timeout=timeout)
    except subprocess.TimeoutExpired as e:
        raise TestFailureError(
            f"冒烟测试超时 ({timeout}s): {' '.join(argv)}",
        ) from e
    except OSError as e:
        raise TestFailureError(f"无法执行 {argv[0]}: {e}") from e

    if result.returncode != test.expected_exit_code:
        output = (result.stderr or result.stdout)[-_OUTPUT_TAIL:]
        raise TestFailureError(
            f"冒烟测试失败 (rc={result.returncode}, "
            f"期望 {test.expected_exit_code}): {' '.join(argv)}",
            returncode=result.returncode, output=output,
        )
    logger.info("  冒烟测试通过: rc=%d", result.returncode)
    return result
