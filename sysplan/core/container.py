"""
依赖容器模块（Dependency Container）。

职责：
- 集中管理所有依赖对象的创建逻辑
- 通过 @register 装饰器注册到依赖注入容器
- 按配置选择存储后端（sqlite / memory）与执行网关（HTTP / 模拟）

注意事项：
    - @register 的名字必须与 Flow 函数参数名一致
    - 连接与内存仓储在模块级缓存（进程内单例），否则内存后端每次注入都是空仓储
    - 本模块在 sysplan/flows/__init__.py 中自动导入，确保注册表在任何 Flow 使用前被填充
"""

from __future__ import annotations

import sqlite3

from sysplan.core.config import (
    GatewayConfig,
    get_cutoff_time,
    get_store_backend,
    get_timezone,
)
from sysplan.core.dependency import register
from sysplan.core.protocols import AttemptGuard, ExecutionGateway, ExecutionLogRepo, PlanRepo
from sysplan.core.schedule.clock import SystemClock
from sysplan.core.schedule.cutoff import RetryPolicy
from sysplan.data.client.order_gateway import OrderGatewayClient
from sysplan.data.client.simulated_gateway import SimulatedGateway
from sysplan.data.db.attempt_guard import AttemptGuard as SqliteAttemptGuard
from sysplan.data.db.db_helper import DbHelper
from sysplan.data.db.execution_log_repo import ExecutionLogRepo as SqliteExecutionLogRepo
from sysplan.data.db.plan_repo import PlanRepo as SqlitePlanRepo
from sysplan.data.memory.attempt_guard import InMemoryAttemptGuard
from sysplan.data.memory.execution_log_repo import InMemoryExecutionLogRepo
from sysplan.data.memory.plan_repo import InMemoryPlanRepo

# ========== 全局单例 ==========

_db_helper: DbHelper | None = None
_memory_plan_repo: InMemoryPlanRepo | None = None
_memory_log_repo: InMemoryExecutionLogRepo | None = None
_memory_attempt_guard: InMemoryAttemptGuard | None = None
_simulated_gateway: SimulatedGateway | None = None


def get_db_connection() -> sqlite3.Connection:
    """
    获取数据库连接（单例模式）。

    说明：
        - 首次调用时初始化 Schema
        - 后续调用复用同一连接
    """
    global _db_helper
    if _db_helper is None:
        helper = DbHelper()
        helper.init_schema_if_needed()
        _db_helper = helper
    return _db_helper.get_connection()


def reset_container() -> None:
    """释放连接与全部缓存单例（测试或切换配置后调用）。"""
    global _db_helper, _memory_plan_repo, _memory_log_repo, _memory_attempt_guard, _simulated_gateway
    if _db_helper is not None:
        _db_helper.close()
    _db_helper = None
    _memory_plan_repo = None
    _memory_log_repo = None
    _memory_attempt_guard = None
    _simulated_gateway = None


def _use_memory() -> bool:
    return get_store_backend() == "memory"


# ========== 依赖工厂函数（注册到容器） ==========


@register("plan_repo")
def get_plan_repo() -> PlanRepo:
    """
    获取计划仓储。

    注册名：plan_repo
    """
    global _memory_plan_repo
    if _use_memory():
        if _memory_plan_repo is None:
            _memory_plan_repo = InMemoryPlanRepo()
        return _memory_plan_repo
    return SqlitePlanRepo(get_db_connection())


@register("execution_log_repo")
def get_execution_log_repo() -> ExecutionLogRepo:
    """
    获取执行日志仓储。

    注册名：execution_log_repo
    """
    global _memory_log_repo
    if _use_memory():
        if _memory_log_repo is None:
            _memory_log_repo = InMemoryExecutionLogRepo()
        return _memory_log_repo
    return SqliteExecutionLogRepo(get_db_connection())


@register("attempt_guard")
def get_attempt_guard() -> AttemptGuard:
    """
    获取 (计划, 业务日) 首次尝试标记。

    注册名：attempt_guard
    """
    global _memory_attempt_guard
    if _use_memory():
        if _memory_attempt_guard is None:
            _memory_attempt_guard = InMemoryAttemptGuard()
        return _memory_attempt_guard
    return SqliteAttemptGuard(get_db_connection())


@register("execution_gateway")
def get_execution_gateway() -> ExecutionGateway:
    """
    获取执行网关。

    配置了 SYSPLAN_GATEWAY_URL 时使用下单系统 HTTP 客户端，否则使用模拟网关。

    注册名：execution_gateway
    """
    global _simulated_gateway
    url = GatewayConfig.get_url()
    if url:
        return OrderGatewayClient(url, timeout=GatewayConfig.get_timeout())
    if _simulated_gateway is None:
        _simulated_gateway = SimulatedGateway(
            GatewayConfig.get_success_rate(),
            seed=GatewayConfig.get_seed(),
        )
    return _simulated_gateway


@register("clock")
def get_clock() -> SystemClock:
    """
    获取业务时钟（按 SYSPLAN_TIMEZONE）。

    注册名：clock
    """
    return SystemClock(get_timezone())


@register("retry_policy")
def get_retry_policy() -> RetryPolicy:
    """
    获取截止/重试窗口策略（按 SYSPLAN_CUTOFF_TIME）。

    注册名：retry_policy
    """
    return RetryPolicy(cutoff=get_cutoff_time())
