"""Pytest 公共夹具：固定时钟、内存仓储、脚本化网关。"""

from __future__ import annotations

from collections import deque
from datetime import date, datetime, timedelta
from decimal import Decimal

import pytest

from sysplan.core.container import reset_container
from sysplan.core.models import ExecutionResult, Plan
from sysplan.core.schedule.clock import FixedClock
from sysplan.core.schedule.cutoff import RetryPolicy
from sysplan.data.memory.attempt_guard import InMemoryAttemptGuard
from sysplan.data.memory.execution_log_repo import InMemoryExecutionLogRepo
from sysplan.data.memory.plan_repo import InMemoryPlanRepo
from sysplan.flows.plan import create_sip_plan

TODAY = date(2026, 10, 19)
MORNING = datetime(2026, 10, 19, 9, 0)


class ScriptedGateway:
    """按预设顺序返回结果的执行网关；队列为空时返回成功。元素为异常时直接抛出。"""

    def __init__(self, *outcomes: ExecutionResult | Exception) -> None:
        self._outcomes: deque[ExecutionResult | Exception] = deque(outcomes)
        self.calls: list[str] = []

    def queue(self, *outcomes: ExecutionResult | Exception) -> None:
        self._outcomes.extend(outcomes)

    def execute(self, plan: Plan) -> ExecutionResult:
        self.calls.append(plan.id)
        if not self._outcomes:
            return ExecutionResult.ok(f"ORD-AUTO-{len(self.calls)}")
        outcome = self._outcomes.popleft()
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch):
    """每个用例使用内存后端与模拟网关，并清空容器单例。"""
    monkeypatch.setenv("SYSPLAN_STORE", "memory")
    for name in (
        "SYSPLAN_GATEWAY_URL",
        "SYSPLAN_GATEWAY_SEED",
        "SYSPLAN_GATEWAY_SUCCESS_RATE",
        "SYSPLAN_MAX_RETRIES",
        "SYSPLAN_CUTOFF_TIME",
        "SYSPLAN_DB_PATH",
        "SYSPLAN_TIMEZONE",
        "SYSPLAN_GATEWAY_TIMEOUT",
    ):
        monkeypatch.delenv(name, raising=False)
    reset_container()
    yield
    reset_container()


@pytest.fixture
def clock() -> FixedClock:
    """固定在 2026-10-19 09:00（截止前）。"""
    return FixedClock(MORNING)


@pytest.fixture
def plan_repo() -> InMemoryPlanRepo:
    return InMemoryPlanRepo()


@pytest.fixture
def log_repo() -> InMemoryExecutionLogRepo:
    return InMemoryExecutionLogRepo()


@pytest.fixture
def gateway() -> ScriptedGateway:
    return ScriptedGateway()


@pytest.fixture
def plan_deps(plan_repo: InMemoryPlanRepo, clock: FixedClock) -> dict:
    """生命周期流程所需依赖。"""
    return {"plan_repo": plan_repo, "clock": clock}


@pytest.fixture
def scheduler_deps(
    plan_repo: InMemoryPlanRepo,
    log_repo: InMemoryExecutionLogRepo,
    gateway: ScriptedGateway,
    clock: FixedClock,
) -> dict:
    """调度流程所需依赖（默认 15:00 截止）。"""
    return {
        "plan_repo": plan_repo,
        "execution_log_repo": log_repo,
        "execution_gateway": gateway,
        "attempt_guard": InMemoryAttemptGuard(),
        "retry_policy": RetryPolicy(),
        "clock": clock,
    }


@pytest.fixture
def new_sip(plan_deps: dict):
    """创建 SIP 计划的工厂；默认今天首期（跳过起始日校验）、每月 5000、12 期。"""

    def _make(**overrides) -> Plan:
        fields = {
            "client_id": 1,
            "scheme_id": 101,
            "amount": Decimal("5000"),
            "start_date": TODAY,
            "frequency": "Monthly",
            "installments": 12,
            "skip_date_validation": True,
        }
        fields.update(overrides)
        return create_sip_plan(**fields, **plan_deps)

    return _make


def at(hour: int, minute: int = 0, day: date = TODAY) -> datetime:
    """业务日内的某个时刻。"""
    return datetime.combine(day, datetime.min.time()) + timedelta(hours=hour, minutes=minute)
