"""
日志工具。

- setup_logging: 入口（CLI/Job）调用一次，配置根 logger；
- log: CLI/Job 输出人话进度的快捷函数；
- 库模块内部使用 logging.getLogger(__name__)，消息以 [组件名] 前缀。
"""

from __future__ import annotations

import logging
import sys

_LOGGER = logging.getLogger("sysplan")


def setup_logging(level: str = "INFO") -> None:
    """
    配置日志输出到 stdout。

    Args:
        level: 日志级别（DEBUG/INFO/WARNING/ERROR），无效值按 INFO 处理。
    """
    log_level = getattr(logging, level.upper(), logging.INFO)
    root = logging.getLogger()
    root.setLevel(log_level)
    for handler in root.handlers[:]:
        root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        logging.Formatter(
            fmt="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    root.addHandler(handler)

    # 压低第三方库噪音
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def log(message: str) -> None:
    """输出一条进度信息（INFO）。"""
    _LOGGER.info(message)
