"""配方模块

- models.py: 配方数据模型与离线校验
- registry.py: 配方文件加载
- fetcher.py: 下载与校验
- installer.py: 解压、安装、冒烟测试
- pipeline.py: 固定顺序的安装流水线
"""

from keg.core.formula.fetcher import ArchiveFetcher
from keg.core.formula.models import InstallAction, PackageDescriptor, TestAction
from keg.core.formula.pipeline import InstallPipeline, InstallReport
from keg.core.formula.registry import FormulaRegistry

__all__ = [
    "ArchiveFetcher",
    "FormulaRegistry",
    "InstallAction",
    "InstallPipeline",
    "InstallReport",
    "PackageDescriptor",
    "TestAction",
]
