"""配方管理器 - 安装回执、卸载、校验"""

from __future__ import annotations

from pathlib import Path

import pytest
import yaml

from keg.core.config import Config
from keg.core.exceptions import FormulaNotFoundError, MissingFileError, TestFailureError
from keg.core.formula_manager import FormulaManager


def _write_formula(formula_dir: Path, sha256: str, **overrides: object) -> None:
    data = {
        "desc": "AWS assume role credential wrapper",
        "homepage": "https://github.com/masahide/getawslog",
        "url": "https://github.com/masahide/getawslog/releases/download/"
               "v0.1.0/getawslog_Darwin_x86_64.tar.gz",
        "version": "0.1.0",
        "sha256": sha256,
        "install": "getawslog",
        "test": "getawslog -v",
    }
    data.update(overrides)
    formula_dir.mkdir(parents=True, exist_ok=True)
    (formula_dir / "getawslog.yml").write_text(yaml.dump(data), encoding="utf-8")


@pytest.fixture()
def manager(tmp_path: Path, archive: Path, helpers) -> FormulaManager:
    cfg = Config(
        formula_dir=str(tmp_path / "Formula"),
        cache_dir=str(tmp_path / "cache"),
        prefix=str(tmp_path / "prefix"),
    )
    _write_formula(tmp_path / "Formula", helpers.sha256(archive))
    helpers.seed_cache(tmp_path / "cache", archive)
    return FormulaManager(cfg, executor=helpers.executor())


class TestInstall:
    def test_install_writes_receipt(self, manager: FormulaManager, tmp_path: Path) -> None:
        report = manager.install("getawslog")
        assert report.success
        assert report.installed_path == tmp_path / "prefix" / "bin" / "getawslog"

        receipt = manager.receipt("getawslog")
        assert receipt["version"] == "0.1.0"
        assert receipt["path"] == str(report.installed_path)
        assert receipt["tested"] is True
        assert [r["name"] for r in manager.list_installed()] == ["getawslog"]

    def test_install_to_explicit_bin_dir(self, manager: FormulaManager, tmp_path: Path) -> None:
        report = manager.install("getawslog", bin_dir=str(tmp_path / "elsewhere"))
        assert report.installed_path == tmp_path / "elsewhere" / "getawslog"

    def test_failed_install_writes_no_receipt(self, tmp_path: Path, archive: Path, helpers) -> None:
        cfg = Config(
            formula_dir=str(tmp_path / "Formula"),
            cache_dir=str(tmp_path / "cache"),
            prefix=str(tmp_path / "prefix"),
        )
        _write_formula(tmp_path / "Formula", helpers.sha256(archive))
        helpers.seed_cache(tmp_path / "cache", archive)
        fm = FormulaManager(cfg, executor=helpers.executor(returncode=1))

        with pytest.raises(TestFailureError, match="冒烟测试失败"):
            fm.install("getawslog")
        assert fm.receipt("getawslog") == {}
        assert fm.list_installed() == []

    def test_unknown_formula(self, manager: FormulaManager) -> None:
        with pytest.raises(FormulaNotFoundError):
            manager.install("nonexist")


class TestTestAndUninstall:
    def test_retest_installed(self, manager: FormulaManager) -> None:
        manager.install("getawslog", skip_test=True)
        assert manager.receipt("getawslog")["tested"] is False
        assert manager.test("getawslog").returncode == 0

    def test_test_requires_install(self, manager: FormulaManager) -> None:
        with pytest.raises(MissingFileError, match="未安装"):
            manager.test("getawslog")

    def test_uninstall(self, manager: FormulaManager) -> None:
        report = manager.install("getawslog")
        assert manager.uninstall("getawslog") is True
        assert not report.installed_path.exists()
        assert manager.receipt("getawslog") == {}
        assert manager.uninstall("getawslog") is False


class TestQuery:
    def test_info(self, manager: FormulaManager) -> None:
        info = manager.info("getawslog")
        assert info["version"] == "0.1.0"
        assert info["test"] == "getawslog -v"
        assert info["installed_version"] == ""

    def test_list(self, manager: FormulaManager) -> None:
        assert [f["name"] for f in manager.list_formulas()] == ["getawslog"]

    def test_audit_ok(self, manager: FormulaManager) -> None:
        assert manager.audit() == {"getawslog": []}

    def test_audit_reports_problems(self, tmp_path: Path) -> None:
        _write_formula(tmp_path / "Formula", "f" * 65, version="0.2.0")
        fm = FormulaManager(Config(formula_dir=str(tmp_path / "Formula")))
        problems = fm.audit("getawslog")["getawslog"]
        assert len(problems) == 2

    def test_audit_unknown(self, manager: FormulaManager) -> None:
        with pytest.raises(FormulaNotFoundError):
            manager.audit("nonexist")
