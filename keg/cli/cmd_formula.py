"""CLI — 配方查询与校验命令"""

from __future__ import annotations

import sys

import click

from keg.cli import _manager


def register(group: click.Group) -> None:
    group.add_command(list_formulas)
    group.add_command(info)
    group.add_command(audit)


@click.command(name="list")
@click.option("--formula-dir", default=None, help="配方目录（覆盖配置）")
def list_formulas(formula_dir: str | None) -> None:
    """列出所有可用配方"""
    formulas = _manager(formula_dir=formula_dir).list_formulas()
    if not formulas:
        click.echo("没有可用的配方。")
        return
    for f in formulas:
        click.echo(f"  {f['name']:20s} {f['version']:12s} {f['description']}")


@click.command()
@click.argument("name")
@click.option("--formula-dir", default=None, help="配方目录（覆盖配置）")
def info(name: str, formula_dir: str | None) -> None:
    """查看配方详情"""
    data = _manager(formula_dir=formula_dir).info(name)
    click.echo(f"{data['name']}: {data['version']}")
    click.echo(data["description"])
    click.echo(data["homepage"])
    click.echo(f"  url:    {data['url']}")
    click.echo(f"  sha256: {data['sha256']}")
    click.echo(f"  安装:   bin/{data['install']}")
    click.echo(f"  测试:   {data['test']}")
    installed = data["installed_version"] or "未安装"
    click.echo(f"  已安装: {installed}")


@click.command()
@click.argument("name", required=False)
@click.option("--formula-dir", default=None, help="配方目录（覆盖配置）")
def audit(name: str | None, formula_dir: str | None) -> None:
    """离线校验配方（字段格式、校验和长度、URL 与版本一致性）"""
    results = _manager(formula_dir=formula_dir).audit(name)
    failed = 0
    for formula, problems in results.items():
        if not problems:
            click.echo(f"  {formula:20s} OK")
            continue
        failed += 1
        click.echo(f"  {formula:20s} {len(problems)} 个问题")
        for p in problems:
            click.echo(f"    - {p}")
    if failed:
        click.echo(f"{failed} 个配方未通过校验", err=True)
        sys.exit(1)
