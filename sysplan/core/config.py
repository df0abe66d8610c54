from __future__ import annotations

import os
from datetime import time

from sysplan.core.schedule.cutoff import parse_cutoff


def get_db_path() -> str:
    """
    返回 SQLite DB 路径。

    Returns:
        数据库文件路径；默认 `data/plans.db`（可由 `SYSPLAN_DB_PATH` 覆盖）。
    """
    return os.getenv("SYSPLAN_DB_PATH", "data/plans.db")


def get_store_backend() -> str:
    """
    返回计划存储后端。

    Returns:
        `sqlite`（默认）或 `memory`（由 `SYSPLAN_STORE` 配置）。

    Raises:
        ValueError: 配置值不受支持。
    """
    value = os.getenv("SYSPLAN_STORE", "sqlite").strip().lower()
    if value not in ("sqlite", "memory"):
        raise ValueError(f"SYSPLAN_STORE 仅支持 sqlite/memory：{value}")
    return value


def enable_sql_debug() -> bool:
    """
    是否启用 SQL 打印（开发期可打开）。

    Returns:
        True/False（由 `ENABLE_SQL_DEBUG=1` 控制）。
    """
    return os.getenv("ENABLE_SQL_DEBUG", "0") == "1"


def get_timezone() -> str:
    """返回业务时区（`SYSPLAN_TIMEZONE`，默认 Asia/Kolkata）。"""
    return os.getenv("SYSPLAN_TIMEZONE", "Asia/Kolkata")


def get_cutoff_time() -> time:
    """
    返回每日执行截止时间。

    Returns:
        `SYSPLAN_CUTOFF_TIME`（HH:MM），默认 15:00。
    """
    return parse_cutoff(os.getenv("SYSPLAN_CUTOFF_TIME", "15:00"))


def get_max_retries() -> int:
    """
    返回新建计划的最大重试次数（`SYSPLAN_MAX_RETRIES`，默认 3）。

    Raises:
        ValueError: 非正整数。
    """
    raw = os.getenv("SYSPLAN_MAX_RETRIES", "3")
    try:
        value = int(raw)
    except ValueError as exc:
        raise ValueError(f"SYSPLAN_MAX_RETRIES 必须为整数：{raw}") from exc
    if value < 1:
        raise ValueError(f"SYSPLAN_MAX_RETRIES 必须 >= 1：{raw}")
    return value


def get_log_level() -> str:
    """返回日志级别（`SYSPLAN_LOG_LEVEL`，默认 INFO）。"""
    return os.getenv("SYSPLAN_LOG_LEVEL", "INFO")


# ========== 执行网关配置 ==========


class GatewayConfig:
    """
    执行网关（下单系统）配置。

    环境变量：
    - SYSPLAN_GATEWAY_URL: 下单系统地址；未配置时使用模拟网关
    - SYSPLAN_GATEWAY_TIMEOUT: 单次请求超时秒数（默认 10）
    - SYSPLAN_GATEWAY_SUCCESS_RATE: 模拟网关成功率（默认 0.8）
    - SYSPLAN_GATEWAY_SEED: 模拟网关随机种子（可选，便于复现）
    """

    @staticmethod
    def get_url() -> str | None:
        """返回下单系统地址，未配置返回 None。"""
        value = os.getenv("SYSPLAN_GATEWAY_URL")
        return value.rstrip("/") if value else None

    @staticmethod
    def get_timeout() -> float:
        """返回请求超时秒数。"""
        return float(os.getenv("SYSPLAN_GATEWAY_TIMEOUT", "10"))

    @staticmethod
    def get_success_rate() -> float:
        """
        返回模拟网关成功率。

        Raises:
            ValueError: 不在 0..1 范围内。
        """
        value = float(os.getenv("SYSPLAN_GATEWAY_SUCCESS_RATE", "0.8"))
        if not 0.0 <= value <= 1.0:
            raise ValueError(f"SYSPLAN_GATEWAY_SUCCESS_RATE 必须在 0..1 之间：{value}")
        return value

    @staticmethod
    def get_seed() -> int | None:
        """返回模拟网关随机种子，未配置返回 None。"""
        value = os.getenv("SYSPLAN_GATEWAY_SEED")
        return int(value) if value else None
