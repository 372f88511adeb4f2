"""安装流水线 - 固定顺序的 6 个步骤

步骤顺序：
1. resolve  - 计算下载地址
2. fetch    - 下载制品（缓存优先）
3. verify   - 校验 sha256
4. extract  - 解压到临时暂存目录
5. install  - 复制声明的文件到 bin 目录
6. test     - 执行冒烟测试

每一步都是硬闸门：任何异常都会终止整次安装并原样抛出，
不重试、不回滚；暂存目录在 finally 中清理。
"""

from __future__ import annotations

import logging
import shutil
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, TypeVar

from keg.core.exceptions import KegError
from keg.core.formula.fetcher import ArchiveFetcher
from keg.core.formula.installer import extract_archive, install_file, run_smoke_test
from keg.core.formula.models import PackageDescriptor, check_descriptor
from keg.utils.shell import CommandExecutor

logger = logging.getLogger(__name__)

_T = TypeVar("_T")


def _require(value: _T | None, step: str) -> _T:
    """取上一步的产物，缺失说明步骤顺序被打乱"""
    if value is None:
        raise KegError(f"步骤 {step} 尚未完成")
    return value


@dataclass
class InstallContext:
    """单次安装的中间产物"""

    descriptor: PackageDescriptor
    bin_dir: Path
    url: str = ""
    archive: Path | None = None
    staging_dir: Path | None = None
    installed_path: Path | None = None


@dataclass
class InstallReport:
    """安装报告，steps 按执行顺序记录每一步的状态"""

    name: str
    version: str
    steps: list[dict[str, Any]] = field(default_factory=list)
    installed_path: Path | None = None
    error: str = ""

    @property
    def success(self) -> bool:
        return not self.error and bool(self.steps) and all(
            s["status"] in ("done", "skipped") for s in self.steps
        )

    @property
    def failed_step(self) -> str:
        for s in self.steps:
            if s["status"] == "failed":
                return s["step"]
        return ""


class InstallPipeline:
    """安装流水线：resolve → fetch → verify → extract → install → test"""

    def __init__(
        self,
        fetcher: ArchiveFetcher,
        *,
        executor: CommandExecutor | None = None,
        test_timeout: float | None = None,
    ) -> None:
        self.fetcher = fetcher
        self.executor = executor
        self.test_timeout = test_timeout

    def run(
        self,
        desc: PackageDescriptor,
        bin_dir: Path,
        *,
        skip_test: bool = False,
        report: InstallReport | None = None,
    ) -> InstallReport:
        """执行安装流水线

        bin_dir 由调用方显式传入。传入 report 时就地记录步骤，
        以便在异常抛出后仍可查看失败发生在哪一步。
        """
        check_descriptor(desc)
        ctx = InstallContext(descriptor=desc, bin_dir=bin_dir)
        if report is None:
            report = InstallReport(name=desc.name, version=desc.version)
        report.name, report.version = desc.name, desc.version
        logger.info("安装 %s@%s -> %s", desc.name, desc.version, bin_dir)

        try:
            self._step(report, "resolve", self._resolve, ctx)
            self._step(report, "fetch", self._fetch, ctx)
            self._step(report, "verify", self._verify, ctx)
            self._step(report, "extract", self._extract, ctx)
            self._step(report, "install", self._install, ctx)
            if skip_test:
                report.steps.append({"step": "test", "status": "skipped"})
            else:
                self._step(report, "test", self._test, ctx)
        finally:
            if ctx.staging_dir is not None:
                shutil.rmtree(ctx.staging_dir, ignore_errors=True)

        report.installed_path = ctx.installed_path
        logger.info("安装完成: %s@%s -> %s", desc.name, desc.version, ctx.installed_path)
        return report

    @staticmethod
    def _step(report: InstallReport, name: str, func: Any, ctx: InstallContext) -> None:
        try:
            detail = func(ctx)
        except Exception as e:
            report.steps.append({
                "step": name, "status": "failed",
                "code": getattr(e, "code", type(e).__name__), "detail": str(e),
            })
            report.error = str(e)
            logger.error("[%s] 失败: %s", name, e)
            raise
        report.steps.append({"step": name, "status": "done", **(detail or {})})

    def _resolve(self, ctx: InstallContext) -> dict[str, Any]:
        ctx.url = self.fetcher.resolve(ctx.descriptor)
        return {"url": ctx.url}

    def _fetch(self, ctx: InstallContext) -> dict[str, Any]:
        ctx.archive = self.fetcher.download(ctx.descriptor, ctx.url)
        return {"archive": str(ctx.archive)}

    def _verify(self, ctx: InstallContext) -> dict[str, Any]:
        digest = self.fetcher.verify(ctx.descriptor, _require(ctx.archive, "fetch"))
        return {"sha256": digest}

    def _extract(self, ctx: InstallContext) -> dict[str, Any]:
        archive = _require(ctx.archive, "fetch")
        ctx.staging_dir = Path(tempfile.mkdtemp(prefix=f"keg-{ctx.descriptor.name}-"))
        extract_archive(archive, ctx.staging_dir)
        return {}

    def _install(self, ctx: InstallContext) -> dict[str, Any]:
        ctx.installed_path = install_file(
            ctx.descriptor.install, _require(ctx.staging_dir, "extract"), ctx.bin_dir,
        )
        return {"path": str(ctx.installed_path)}

    def _test(self, ctx: InstallContext) -> dict[str, Any]:
        result = run_smoke_test(
            ctx.descriptor.test, ctx.bin_dir,
            executor=self.executor, timeout=self.test_timeout,
        )
        return {"returncode": result.returncode}
