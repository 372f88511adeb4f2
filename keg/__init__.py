"""keg - 二进制制品配方安装工具"""

__version__ = "0.1.0"
