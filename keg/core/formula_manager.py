"""配方管理器

CLI 使用的统一入口，组合注册表、拉取器和安装流水线，并维护安装回执。

用法:
    from keg.core.formula_manager import FormulaManager

    fm = FormulaManager()
    report = fm.install("getawslog")
    fm.test("getawslog")

    # 仅做离线校验
    problems = fm.audit("getawslog")
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from keg.core.config import Config, get_config
from keg.core.exceptions import MissingFileError, ValidationError
from keg.core.formula.fetcher import ArchiveFetcher
from keg.core.formula.installer import run_smoke_test
from keg.core.formula.models import PackageDescriptor
from keg.core.formula.pipeline import InstallPipeline, InstallReport
from keg.core.formula.registry import FormulaRegistry
from keg.utils.shell import CommandExecutor, CommandResult
from keg.utils.yaml_io import load_yaml, save_yaml

logger = logging.getLogger(__name__)


class FormulaManager:
    """配方统一管理器"""

    def __init__(
        self,
        config: Config | None = None,
        *,
        formula_dir: str | None = None,
        cache_dir: str | None = None,
        bin_dir: str | None = None,
        executor: CommandExecutor | None = None,
    ) -> None:
        cfg = config or get_config()
        self.config = cfg
        self.formula_dir = Path(formula_dir or cfg.formula_dir)
        self.bin_dir = Path(bin_dir) if bin_dir else cfg.resolved_bin_dir
        self.receipts_dir = cfg.receipts_dir
        self.registry = FormulaRegistry(self.formula_dir)
        self.fetcher = ArchiveFetcher(
            Path(cache_dir or cfg.cache_dir), timeout=cfg.download_timeout,
        )
        self.executor = executor
        self.pipeline = InstallPipeline(
            self.fetcher, executor=executor, test_timeout=cfg.test_timeout,
        )

    # ---- 查询 ----

    def get(self, name: str) -> PackageDescriptor:
        return self.registry.get(name)

    def list_formulas(self) -> list[dict[str, str]]:
        return FormulaRegistry.list_formulas(self.registry.formulas)

    def info(self, name: str) -> dict[str, Any]:
        """配方详情 + 本地安装状态"""
        desc = self.get(name)
        receipt = self.receipt(name)
        return {
            "name": desc.name,
            "description": desc.description,
            "homepage": desc.homepage,
            "version": desc.version,
            "url": desc.resolve_url(),
            "sha256": desc.checksum,
            "install": desc.install.source_file_name,
            "test": " ".join(desc.test.command),
            "installed_version": receipt.get("version", ""),
        }

    def audit(self, name: str | None = None) -> dict[str, list[str]]:
        """离线校验配方，返回 {配方名: 问题列表}"""
        paths = self.registry.paths()
        if name is not None:
            if name not in paths:
                self.registry.get(name)  # 抛 FormulaNotFoundError
            paths = {name: paths[name]}
        results: dict[str, list[str]] = {}
        for formula, path in paths.items():
            try:
                self.registry.load_file(path)
                results[formula] = []
            except ValidationError as e:
                results[formula] = e.details or [str(e)]
        return results

    # ---- 拉取 / 安装 ----

    def fetch(self, name: str) -> Path:
        """只下载并校验，不安装"""
        return self.fetcher.fetch(self.get(name))

    def install(
        self, name: str, *, bin_dir: str | None = None, skip_test: bool = False,
        report: InstallReport | None = None,
    ) -> InstallReport:
        """执行完整安装流水线，成功后写入安装回执"""
        desc = self.get(name)
        target = Path(bin_dir) if bin_dir else self.bin_dir
        report = self.pipeline.run(desc, target, skip_test=skip_test, report=report)
        self._write_receipt(desc, report)
        return report

    def test(self, name: str, *, bin_dir: str | None = None) -> CommandResult:
        """对已安装的配方重新执行冒烟测试"""
        desc = self.get(name)
        target = Path(bin_dir) if bin_dir else self.bin_dir
        if not (target / desc.install.installed_name).is_file():
            raise MissingFileError(
                f"'{name}' 未安装: {target / desc.install.installed_name}"
            )
        return run_smoke_test(
            desc.test, target,
            executor=self.executor, timeout=self.config.test_timeout,
        )

    def uninstall(self, name: str) -> bool:
        """删除已安装文件和回执，未安装时返回 False"""
        receipt = self.receipt(name)
        if not receipt:
            return False
        installed = Path(receipt.get("path", ""))
        if installed.is_file():
            installed.unlink()
            logger.info("已删除: %s", installed)
        self._receipt_path(name).unlink(missing_ok=True)
        return True

    # ---- 安装回执 ----

    def _receipt_path(self, name: str) -> Path:
        return self.receipts_dir / f"{name}.yml"

    def receipt(self, name: str) -> dict[str, Any]:
        return load_yaml(self._receipt_path(name))

    def list_installed(self) -> list[dict[str, Any]]:
        if not self.receipts_dir.is_dir():
            return []
        return [
            load_yaml(p) for p in sorted(self.receipts_dir.glob("*.yml"))
        ]

    def _write_receipt(self, desc: PackageDescriptor, report: InstallReport) -> None:
        save_yaml(self._receipt_path(desc.name), {
            "name": desc.name,
            "version": desc.version,
            "sha256": desc.checksum,
            "path": str(report.installed_path),
            "tested": not any(
                s["step"] == "test" and s["status"] == "skipped" for s in report.steps
            ),
            "installed_at": datetime.now(timezone.utc).isoformat(),
        })
