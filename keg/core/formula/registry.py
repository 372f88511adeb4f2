"""配方注册表

职责:
- 从配方目录加载 <name>.yml 配方文件
- 把 YAML 映射转换为 PackageDescriptor 并做离线校验
- 单个配方无效时跳过并记录错误，不影响其他配方

配方文件格式:
    name: getawslog
    desc: "AWS assume role credential wrapper"
    homepage: https://github.com/masahide/getawslog
    url: https://github.com/.../v0.1.0/getawslog_Darwin_x86_64.tar.gz
    version: 0.1.0
    sha256: ff03bc58...
    install:
      file: getawslog
      target: bin
    test:
      command: getawslog -v
      expected_exit_code: 0
"""

from __future__ import annotations

import logging
import shlex
from pathlib import Path
from typing import Any

import yaml

from keg.core.exceptions import FormulaNotFoundError, ValidationError
from keg.core.formula.models import (
    InstallAction,
    PackageDescriptor,
    TestAction,
    validate_descriptor,
)
from keg.utils.yaml_io import load_yaml

logger = logging.getLogger(__name__)

FORMULA_SUFFIXES = (".yml", ".yaml")
_REQUIRED_KEYS = ("desc", "homepage", "url", "version", "sha256", "install")


def _as_str(
    data: dict[str, Any], key: str, problems: list[str], *, strict: bool = False,
) -> str:
    """strict 时只接受字符串: YAML 会把 1.10 读成浮点 1.1"""
    value = data.get(key, "")
    if value is None:
        return ""
    allowed = str if strict else (str, int, float)
    if not isinstance(value, allowed) or isinstance(value, bool):
        problems.append(f"{key} 必须是字符串")
        return ""
    return str(value)


def _parse_command(raw: Any, problems: list[str]) -> tuple[str, ...]:
    if isinstance(raw, str):
        try:
            return tuple(shlex.split(raw))
        except ValueError as e:
            problems.append(f"test.command 无法解析: {e}")
            return ()
    if isinstance(raw, list) and all(isinstance(a, (str, int)) for a in raw):
        return tuple(str(a) for a in raw)
    problems.append("test.command 必须是字符串或字符串列表")
    return ()


def descriptor_from_dict(
    data: dict[str, Any], *, default_name: str = "", source_path: str = "",
) -> PackageDescriptor:
    """把配方映射转换为 PackageDescriptor

    只检查结构（必填字段、类型），语义校验由 validate_descriptor 负责。

    Raises:
        ValidationError: 缺字段或类型错误，details 列出全部问题
    """
    problems: list[str] = []
    name = _as_str(data, "name", problems) or default_name
    if not name:
        problems.append("缺少 name")
    for key in _REQUIRED_KEYS:
        if data.get(key) in (None, ""):
            problems.append(f"缺少 {key}")

    install_raw = data.get("install") or {}
    if isinstance(install_raw, str):
        install_raw = {"file": install_raw}
    if not isinstance(install_raw, dict):
        problems.append("install 必须是映射或文件名")
        install_raw = {}
    install = InstallAction(
        source_file_name=str(install_raw.get("file", "")),
        target_directory=str(install_raw.get("target", "bin")),
    )

    test_raw = data.get("test")
    if test_raw is None:
        # 未声明测试时默认执行 "<file> -v"
        test_raw = {"command": [install.installed_name, "-v"]}
    if isinstance(test_raw, (str, list)):
        test_raw = {"command": test_raw}
    if not isinstance(test_raw, dict):
        problems.append("test 必须是映射")
        test_raw = {}
    command = _parse_command(test_raw.get("command", ""), problems)
    expected = test_raw.get("expected_exit_code", 0)
    if not isinstance(expected, int) or isinstance(expected, bool):
        problems.append("test.expected_exit_code 必须是整数")
        expected = 0

    desc = PackageDescriptor(
        name=name,
        description=_as_str(data, "desc", problems),
        homepage=_as_str(data, "homepage", problems),
        url=_as_str(data, "url", problems),
        version=_as_str(data, "version", problems, strict=True),
        checksum=_as_str(data, "sha256", problems, strict=True).strip().lower(),
        install=install,
        test=TestAction(command=command, expected_exit_code=expected),
        source_path=source_path,
    )
    if problems:
        raise ValidationError(
            f"配方 '{name or source_path}' 结构无效: {'; '.join(problems)}",
            details=problems,
        )
    return desc


class FormulaRegistry:
    """配方注册表 - 从配方目录加载全部配方"""

    def __init__(self, formula_dir: Path) -> None:
        self.formula_dir = formula_dir
        self.errors: dict[str, ValidationError] = {}
        self._formulas: dict[str, PackageDescriptor] | None = None

    def _formula_files(self) -> list[Path]:
        if not self.formula_dir.is_dir():
            logger.warning("配方目录不存在: %s", self.formula_dir)
            return []
        return sorted(
            p for p in self.formula_dir.iterdir()
            if p.is_file() and p.suffix in FORMULA_SUFFIXES
        )

    def load_file(self, path: Path) -> PackageDescriptor:
        """加载并校验单个配方文件"""
        try:
            data = load_yaml(path)
        except (yaml.YAMLError, ValueError) as e:
            raise ValidationError(f"配方文件无法解析: {path}: {e}") from e
        if not data:
            raise ValidationError(f"配方文件为空或不是映射: {path}")

        desc = descriptor_from_dict(
            data, default_name=path.stem, source_path=str(path),
        )
        problems = validate_descriptor(desc)
        if desc.name != path.stem:
            problems.append(f"name '{desc.name}' 与文件名 '{path.stem}' 不一致")
        if problems:
            raise ValidationError(
                f"配方 '{desc.name}' 校验失败: {'; '.join(problems)}",
                details=problems,
            )
        return desc

    def load(self) -> dict[str, PackageDescriptor]:
        """加载配方目录下全部配方，无效配方记录到 errors"""
        formulas: dict[str, PackageDescriptor] = {}
        self.errors = {}
        for path in self._formula_files():
            try:
                desc = self.load_file(path)
            except ValidationError as e:
                logger.warning("跳过无效配方 %s: %s", path.name, e)
                self.errors[path.stem] = e
                continue
            if desc.name in formulas:
                logger.warning("重复的配方名 %s，忽略 %s", desc.name, path)
                continue
            formulas[desc.name] = desc
        logger.info("已加载 %d 个配方", len(formulas))
        self._formulas = formulas
        return formulas

    @property
    def formulas(self) -> dict[str, PackageDescriptor]:
        if self._formulas is None:
            return self.load()
        return self._formulas

    def get(self, name: str) -> PackageDescriptor:
        """按名称获取配方；无效配方抛出其加载错误"""
        desc = self.formulas.get(name)
        if desc is not None:
            return desc
        if name in self.errors:
            raise self.errors[name]
        raise FormulaNotFoundError(
            f"配方 '{name}' 不存在。可用: {sorted(self.formulas)}"
        )

    def paths(self) -> dict[str, Path]:
        """配方名到配方文件路径（含无效配方）"""
        return {p.stem: p for p in self._formula_files()}

    @staticmethod
    def list_formulas(formulas: dict[str, PackageDescriptor]) -> list[dict[str, str]]:
        """格式化配方列表用于展示"""
        return [
            {
                "name": d.name,
                "version": d.version,
                "description": d.description,
                "homepage": d.homepage,
            }
            for d in formulas.values()
        ]
