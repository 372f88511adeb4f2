"""keg 日志配置

只配置 keg 包自己的日志器（不动根日志器），嵌入到其他程序时不会
改写宿主的日志设置。安装步骤日志输出到 stderr，stdout 留给命令结果。
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone

from keg.core.exceptions import ConfigError

LOGGER_NAME = "keg"
LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")
_TEXT_FORMAT = "%(asctime)s [%(levelname)-7s] %(name)s: %(message)s"


class JSONFormatter(logging.Formatter):
    """JSON 行格式器，一次安装的每个步骤一行，便于 CI 检索失败步骤"""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(
                record.created, tz=timezone.utc,
            ).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info and record.exc_info[1]:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False)


def parse_level(level: str) -> int:
    """日志级别名转为数值，未知级别抛 ConfigError"""
    name = level.strip().upper()
    if name not in LEVELS:
        raise ConfigError(f"未知日志级别 '{level}'，可选: {', '.join(LEVELS)}")
    return getattr(logging, name)


def setup_logging(level: str = "INFO", json_output: bool = False) -> logging.Logger:
    """配置 keg 日志器并返回

    重复调用会替换已有 handler；propagate 关闭，避免根日志器重复输出。
    """
    numeric = parse_level(level)
    reset_logging()
    log = logging.getLogger(LOGGER_NAME)
    log.setLevel(numeric)
    log.propagate = False

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JSONFormatter() if json_output else logging.Formatter(_TEXT_FORMAT))
    log.addHandler(handler)
    return log


def reset_logging() -> None:
    """移除 keg 日志器的 handler，恢复向根日志器传播"""
    log = logging.getLogger(LOGGER_NAME)
    for handler in log.handlers[:]:
        log.removeHandler(handler)
        handler.close()
    log.setLevel(logging.NOTSET)
    log.propagate = True
