"""命令行接口"""

from __future__ import annotations

from pathlib import Path

import pytest
from click.testing import CliRunner

from keg.cli import main

REPO_FORMULA_DIR = Path(__file__).resolve().parents[1] / "Formula"


@pytest.fixture()
def workdir(tmp_path: Path, monkeypatch) -> Path:
    monkeypatch.chdir(tmp_path)
    return tmp_path


def _invoke(*args: str):
    return CliRunner().invoke(main, ["--config", "missing.yml", *args])


class TestQueryCommands:
    def test_list_shipped_formulas(self, workdir: Path) -> None:
        result = _invoke("list", "--formula-dir", str(REPO_FORMULA_DIR))
        assert result.exit_code == 0
        assert "getawslog" in result.output
        assert "0.1.0" in result.output

    def test_info(self, workdir: Path) -> None:
        result = _invoke("info", "getawslog", "--formula-dir", str(REPO_FORMULA_DIR))
        assert result.exit_code == 0
        assert "AWS assume role credential wrapper" in result.output
        assert "未安装" in result.output

    def test_audit_shipped_formula(self, workdir: Path) -> None:
        result = _invoke("audit", "--formula-dir", str(REPO_FORMULA_DIR))
        assert result.exit_code == 0
        assert "getawslog" in result.output
        assert "OK" in result.output

    def test_audit_failure_exit_code(self, workdir: Path) -> None:
        formula_dir = workdir / "Formula"
        formula_dir.mkdir()
        (formula_dir / "getawslog.yml").write_text(
            (REPO_FORMULA_DIR / "getawslog.yml").read_text(encoding="utf-8")
            .replace("sha256: ff03", "sha256: ff03a"),
            encoding="utf-8",
        )
        result = _invoke("audit", "--formula-dir", str(formula_dir))
        assert result.exit_code == 1
        assert "长度" in result.output

    def test_unknown_formula_error(self, workdir: Path) -> None:
        result = _invoke("info", "nonexist", "--formula-dir", str(REPO_FORMULA_DIR))
        assert result.exit_code == 1
        assert "[FORMULA_NOT_FOUND]" in result.output

    def test_unknown_log_level(self, workdir: Path) -> None:
        result = _invoke("--log-level", "VERBOSE", "list")
        assert result.exit_code == 1
        assert "[CONFIG_ERROR]" in result.output


class TestInstallCommands:
    def _prepare(self, workdir: Path, archive: Path, helpers) -> Path:
        formula_dir = workdir / "Formula"
        formula_dir.mkdir()
        text = (REPO_FORMULA_DIR / "getawslog.yml").read_text(encoding="utf-8")
        shipped_sha = "ff03bc58610a4213a7c94cfeb37b4907f2777499ae0438f2696c6a69d63e2c61"
        (formula_dir / "getawslog.yml").write_text(
            text.replace(shipped_sha, helpers.sha256(archive)), encoding="utf-8",
        )
        helpers.seed_cache(workdir / ".keg" / "cache", archive)
        return formula_dir

    def test_install_test_uninstall(self, workdir: Path, archive: Path, helpers) -> None:
        formula_dir = self._prepare(workdir, archive, helpers)

        result = _invoke("install", "getawslog", "--formula-dir", str(formula_dir))
        assert result.exit_code == 0, result.output
        assert (workdir / ".keg" / "bin" / "getawslog").is_file()
        assert "已安装" in result.output

        result = _invoke("test", "getawslog", "--formula-dir", str(formula_dir))
        assert result.exit_code == 0
        assert "rc=0" in result.output

        result = _invoke("installed")
        assert "getawslog" in result.output

        result = _invoke("uninstall", "getawslog")
        assert "已卸载" in result.output
        assert not (workdir / ".keg" / "bin" / "getawslog").exists()

    def test_install_integrity_failure(self, workdir: Path, archive: Path, helpers) -> None:
        formula_dir = self._prepare(workdir, archive, helpers)
        tampered = helpers.tar(
            workdir / "other.tar.gz", {"getawslog": b"#!/bin/sh\nexit 0\n"},
        )
        helpers.seed_cache(workdir / ".keg" / "cache", tampered)

        result = _invoke(
            "install", "getawslog", "--formula-dir", str(formula_dir),
            "--bin-dir", str(workdir / "bin"),
        )
        assert result.exit_code == 1
        assert "[INTEGRITY_ERROR]" in result.output
        assert "verify   failed" in result.output
        assert not (workdir / "bin").exists()
