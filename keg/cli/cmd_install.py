"""CLI — 拉取、安装、测试、卸载命令"""

from __future__ import annotations

import click

from keg.cli import _manager
from keg.core.formula.pipeline import InstallReport


def register(group: click.Group) -> None:
    group.add_command(fetch)
    group.add_command(install)
    group.add_command(smoke_test)
    group.add_command(uninstall)
    group.add_command(installed)


def _echo_steps(report: InstallReport) -> None:
    for s in report.steps:
        click.echo(f"  {s['step']:8s} {s['status']}")


@click.command()
@click.argument("name")
@click.option("--formula-dir", default=None, help="配方目录（覆盖配置）")
@click.option("--cache-dir", default=None, help="下载缓存目录（覆盖配置）")
def fetch(name: str, formula_dir: str | None, cache_dir: str | None) -> None:
    """下载并校验制品（不安装）"""
    path = _manager(formula_dir=formula_dir, cache_dir=cache_dir).fetch(name)
    click.echo(f"就绪: {name} -> {path}")


@click.command()
@click.argument("name")
@click.option("--formula-dir", default=None, help="配方目录（覆盖配置）")
@click.option("--cache-dir", default=None, help="下载缓存目录（覆盖配置）")
@click.option("--bin-dir", default=None, help="安装目标目录（覆盖配置）")
@click.option("--skip-test", is_flag=True, help="跳过安装后的冒烟测试")
def install(
    name: str, formula_dir: str | None, cache_dir: str | None,
    bin_dir: str | None, skip_test: bool,
) -> None:
    """安装配方：resolve → fetch → verify → extract → install → test"""
    fm = _manager(formula_dir=formula_dir, cache_dir=cache_dir, bin_dir=bin_dir)
    report = InstallReport(name=name, version="")
    try:
        fm.install(name, skip_test=skip_test, report=report)
    finally:
        _echo_steps(report)
    click.echo(f"已安装: {name} -> {report.installed_path}")


@click.command(name="test")
@click.argument("name")
@click.option("--formula-dir", default=None, help="配方目录（覆盖配置）")
@click.option("--bin-dir", default=None, help="安装目标目录（覆盖配置）")
def smoke_test(name: str, formula_dir: str | None, bin_dir: str | None) -> None:
    """对已安装的配方重新执行冒烟测试"""
    result = _manager(formula_dir=formula_dir, bin_dir=bin_dir).test(name)
    click.echo(f"测试通过: {name} (rc={result.returncode})")


@click.command()
@click.argument("name")
def uninstall(name: str) -> None:
    """删除已安装的文件和安装回执"""
    if _manager().uninstall(name):
        click.echo(f"已卸载: {name}")
    else:
        click.echo(f"未安装: {name}")


@click.command()
def installed() -> None:
    """列出已安装的配方"""
    receipts = _manager().list_installed()
    if not receipts:
        click.echo("没有已安装的配方。")
        return
    for r in receipts:
        click.echo(
            f"  {r.get('name', ''):20s} {r.get('version', ''):12s} "
            f"{r.get('installed_at', '')[:19]}  {r.get('path', '')}"
        )
