"""keg 命令行接口

CLI 按领域拆分为子模块，每个模块注册自己的命令到 main group。
"""

from typing import Any

import click

from keg import __version__
from keg.core.config import DEFAULT_CONFIG_PATH, init_config
from keg.core.exceptions import KegError
from keg.utils.logger import setup_logging


class KegGroup(click.Group):
    """把 KegError 转换为 "[code] message" 形式的 CLI 错误"""

    def invoke(self, ctx: click.Context) -> Any:
        try:
            return super().invoke(ctx)
        except KegError as e:
            raise click.ClickException(f"[{e.code}] {e}") from e


def _manager(**overrides: Any) -> Any:
    """创建配方管理器的快捷方式"""
    from keg.core.formula_manager import FormulaManager
    return FormulaManager(**{k: v for k, v in overrides.items() if v})


@click.group(cls=KegGroup)
@click.version_option(version=__version__)
@click.option("--config", "-c", default=DEFAULT_CONFIG_PATH, help="配置文件路径")
@click.option("--log-level", envvar="KEG_LOG_LEVEL", default="INFO", show_default=True,
              help="日志级别 (DEBUG/INFO/WARNING/ERROR)")
@click.option("--log-json", envvar="KEG_LOG_JSON", is_flag=True, help="以 JSON 行输出日志")
def main(config: str, log_level: str, log_json: bool) -> None:
    """keg - 二进制制品配方安装工具"""
    setup_logging(level=log_level, json_output=log_json)
    init_config(config)


# 注册各领域子命令
from keg.cli.cmd_formula import register as _reg_formula  # noqa: E402
from keg.cli.cmd_install import register as _reg_install  # noqa: E402

_reg_formula(main)
_reg_install(main)
