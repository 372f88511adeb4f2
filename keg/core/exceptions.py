"""统一异常体系

所有业务异常继承 KegError，每个子类带一个稳定的 code，
CLI 层据此输出 "[code] message" 形式的友好提示。
安装流水线中的任何异常都是终止性的，不做重试也不回滚。
"""

from __future__ import annotations


class KegError(Exception):
    """基础异常"""

    code: str = "UNKNOWN"

    def __init__(self, message: str) -> None:
        super().__init__(message)


class ConfigError(KegError):
    """配置文件缺失或内容无效"""

    code = "CONFIG_ERROR"


class ValidationError(KegError):
    """配方字段或输入数据校验失败"""

    code = "VALIDATION_ERROR"

    def __init__(self, message: str, details: list[str] | None = None) -> None:
        super().__init__(message)
        self.details = details or []


class FormulaNotFoundError(KegError):
    """配方不存在"""

    code = "FORMULA_NOT_FOUND"


class DownloadError(KegError):
    """制品下载失败"""

    code = "DOWNLOAD_ERROR"


class IntegrityError(KegError):
    """制品摘要与配方记录的校验和不一致"""

    code = "INTEGRITY_ERROR"

    def __init__(self, message: str, expected: str = "", actual: str = "") -> None:
        super().__init__(message)
        self.expected = expected
        self.actual = actual


class ExtractError(KegError):
    """制品无法解压"""

    code = "EXTRACT_ERROR"


class MissingFileError(KegError):
    """解压后找不到配方声明的文件"""

    code = "MISSING_FILE"


class TestFailureError(KegError):
    """安装后冒烟测试失败"""

    code = "TEST_FAILURE"
    __test__ = False  # 避免被 pytest 当作测试类收集

    def __init__(
        self, message: str, returncode: int | None = None, output: str = "",
    ) -> None:
        super().__init__(message)
        self.returncode = returncode
        self.output = output


class InstallError(KegError):
    """文件无法写入安装目标目录"""

    code = "INSTALL_ERROR"
