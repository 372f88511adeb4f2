"""集中配置管理

支持从 YAML 文件加载 + 编程式覆盖。
目录布局:
  prefix/bin/        安装目标目录（可用 bin_dir 单独覆盖）
  prefix/receipts/   安装回执
  cache_dir/         下载缓存
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from keg.core.exceptions import ConfigError
from keg.utils.yaml_io import load_yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "configs/default.yml"


@dataclass
class Config:
    """全局配置"""

    # 目录
    formula_dir: str = "Formula"
    cache_dir: str = ".keg/cache"
    prefix: str = ".keg"
    bin_dir: str = ""

    # 执行
    download_timeout: float = 60.0
    test_timeout: float = 30.0

    extra: dict = field(default_factory=dict)

    @property
    def resolved_bin_dir(self) -> Path:
        return Path(self.bin_dir) if self.bin_dir else Path(self.prefix) / "bin"

    @property
    def receipts_dir(self) -> Path:
        return Path(self.prefix) / "receipts"

    @classmethod
    def from_file(cls, path: str = DEFAULT_CONFIG_PATH) -> Config:
        """从 YAML 文件加载配置，不存在则返回默认"""
        data = load_yaml(path)
        if not data:
            return cls()
        known = {f.name for f in cls.__dataclass_fields__.values()} - {"extra"}
        matched = {k: v for k, v in data.items() if k in known}
        extra = {k: v for k, v in data.items() if k not in known}
        for key in ("download_timeout", "test_timeout"):
            if key in matched:
                try:
                    matched[key] = float(matched[key])
                except (TypeError, ValueError) as e:
                    raise ConfigError(f"{path}: {key} 必须是数字: {matched[key]!r}") from e
        cfg = cls(**matched)
        cfg.extra = extra
        return cfg


# 全局单例，首次 import 时不加载文件；由 CLI 入口显式初始化
_current: Config | None = None


def get_config() -> Config:
    """获取当前配置（未初始化则返回默认值）"""
    global _current  # noqa: PLW0603
    if _current is None:
        _current = Config()
    return _current


def init_config(path: str = DEFAULT_CONFIG_PATH) -> Config:
    """从文件初始化全局配置"""
    global _current  # noqa: PLW0603
    _current = Config.from_file(path)
    logger.info("配置已加载: %s", path)
    return _current


def reset_config() -> None:
    """丢弃全局配置（测试用）"""
    global _current  # noqa: PLW0603
    _current = None
