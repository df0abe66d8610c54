"""计划调度与当日重试流程。"""

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any

from sysplan.core.dependency import dependency
from sysplan.core.models import ExecutionLog, ExecutionResult, ExecutionStatus, Plan
from sysplan.core.protocols import (
    AttemptGuard,
    Clock,
    ExecutionGateway,
    ExecutionLogRepo,
    PlanRepo,
)
from sysplan.core.schedule.cutoff import RetryPolicy
from sysplan.flows.plan import mark_plan_execution

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class SchedulerRunResult:
    """
    一次调度运行的汇总（供 Job/CLI 展示）。

    - logs: 本次产生的执行日志（每个被尝试的计划一条）
    - skipped: 因当日已尝试过而跳过的计划 ID
    - errors: 处理中出现意外异常的计划 ID → 错误信息（不影响其他计划）
    """

    day: date
    logs: list[ExecutionLog] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    errors: dict[str, str] = field(default_factory=dict)

    @property
    def attempted(self) -> int:
        return len(self.logs)

    def count(self, status: ExecutionStatus) -> int:
        return sum(1 for log in self.logs if log.status == status)


@dependency
def process_plan_execution(
    *,
    plan: Plan,
    day: date,
    plan_repo: PlanRepo | None = None,
    execution_log_repo: ExecutionLogRepo | None = None,
    execution_gateway: ExecutionGateway | None = None,
    retry_policy: RetryPolicy | None = None,
    clock: Clock | None = None,
) -> ExecutionLog:
    """
    对单个计划发起一次执行尝试并记录结果。

    流程：
    1. 调用执行网关（异常/超时统一视为失败结果）；
    2. 通过 mark_plan_execution 回写计划状态；
    3. 追加一条执行日志：
       - Success: 执行成功；
       - Retrying: 失败，计划仍为 Active，且按更新后的 retry_count 当前时刻处于重试窗口内；
       - Failed: 其余失败（达到 max_retries、窗口未开放或已无窗口、已过截止）。

    Args:
        plan: 待执行计划（调用方已确认到期）。
        day: 业务日期（写入日志）。

    Returns:
        本次尝试的执行日志。

    Raises:
        InvalidStateError / PlanNotFoundError / ConcurrentUpdateError:
            计划在执行期间被并发修改（调用方负责隔离）。
    """
    attempted_at = clock.now()
    result = _call_gateway(execution_gateway, plan)

    updated = mark_plan_execution(
        plan_id=plan.id,
        success=result.success,
        failure_reason=result.reason,
        reference_id=result.reference_id,
        plan_repo=plan_repo,
        clock=clock,
    )

    if result.success:
        status: ExecutionStatus = "Success"
        retry_count = plan.retry_count
    else:
        retry_count = updated.retry_count
        retryable = updated.status == "Active" and retry_policy.can_retry_now(
            updated.retry_count, updated.max_retries, attempted_at
        )
        status = "Retrying" if retryable else "Failed"

    log = ExecutionLog(
        id=_new_log_id(attempted_at),
        plan_id=plan.id,
        execution_date=day,
        execution_time=attempted_at,
        status=status,
        retry_count=retry_count,
        failure_reason=None if result.success else result.reason,
        reference_id=result.reference_id,
        created_at=clock.now(),
    )
    execution_log_repo.add(log)

    if result.success:
        logger.info(f"[Scheduler] {plan.id} 执行成功：order={result.reference_id}")
    else:
        logger.warning(
            f"[Scheduler] {plan.id} 执行失败（{status}）：reason={result.reason} "
            f"retry={updated.retry_count}/{updated.max_retries}"
        )
    return log


@dependency
def run_scheduled_plans(
    *,
    day: date | None = None,
    guard: bool = True,
    plan_repo: PlanRepo | None = None,
    execution_log_repo: ExecutionLogRepo | None = None,
    execution_gateway: ExecutionGateway | None = None,
    attempt_guard: AttemptGuard | None = None,
    retry_policy: RetryPolicy | None = None,
    clock: Clock | None = None,
) -> SchedulerRunResult:
    """
    处理某业务日（默认今天）全部到期计划，返回运行汇总。

    规则：
    - 仅处理 Active 且 next_execution_date == day 的计划，每个计划本次只尝试一次；
    - guard=True 时按 (plan_id, day) 占用首次尝试标记，同日重复触发会跳过已尝试的计划，
      当日后续尝试只走 retry_failed_executions；
    - 单个计划的意外异常只记录日志，不中断其他计划。
    """
    day = day or clock.today()
    run = SchedulerRunResult(day=day)
    plans = plan_repo.list_due_on(day)
    logger.info(f"[Scheduler] {day} 到期计划 {len(plans)} 个")

    for plan in plans:
        if plan.status != "Active":
            continue
        if guard and not attempt_guard.claim(plan.id, day):
            logger.info(f"[Scheduler] {plan.id} 今日已尝试，跳过")
            run.skipped.append(plan.id)
            continue
        _attempt(
            run,
            plan,
            day,
            plan_repo=plan_repo,
            execution_log_repo=execution_log_repo,
            execution_gateway=execution_gateway,
            retry_policy=retry_policy,
            clock=clock,
        )
    return run


@dependency
def process_scheduled_plans(
    *,
    day: date | None = None,
    guard: bool = True,
    plan_repo: PlanRepo | None = None,
    execution_log_repo: ExecutionLogRepo | None = None,
    execution_gateway: ExecutionGateway | None = None,
    attempt_guard: AttemptGuard | None = None,
    retry_policy: RetryPolicy | None = None,
    clock: Clock | None = None,
) -> list[ExecutionLog]:
    """
    处理某业务日（默认今天）全部到期计划，返回每个计划的执行日志。

    口径同 run_scheduled_plans。
    """
    run = run_scheduled_plans(
        day=day,
        guard=guard,
        plan_repo=plan_repo,
        execution_log_repo=execution_log_repo,
        execution_gateway=execution_gateway,
        attempt_guard=attempt_guard,
        retry_policy=retry_policy,
        clock=clock,
    )
    return run.logs


@dependency
def run_retry_sweep(
    *,
    plan_repo: PlanRepo | None = None,
    execution_log_repo: ExecutionLogRepo | None = None,
    execution_gateway: ExecutionGateway | None = None,
    retry_policy: RetryPolicy | None = None,
    clock: Clock | None = None,
) -> SchedulerRunResult:
    """
    当日重试扫描。

    选择今日到期、Active 且 0 < retry_count < max_retries 的计划，
    仅当当前时刻处于该计划对应的重试窗口内（窗口开放 <= now < 截止）时再尝试一次。
    默认口径下只有 retry_count == 1 的计划会在 14:00 之后被重试。
    截止之后不做任何尝试。
    """
    now = clock.now()
    today = now.date()
    run = SchedulerRunResult(day=today)

    if not retry_policy.is_before_cutoff(now):
        logger.info(f"[Scheduler:retry] 已过截止时间 {retry_policy.cutoff}，今日不再重试")
        return run

    candidates = [
        p
        for p in plan_repo.list_due_on(today)
        if p.status == "Active" and 0 < p.retry_count < p.max_retries
    ]
    eligible = [p for p in candidates if retry_policy.can_retry_now(p.retry_count, p.max_retries, now)]
    logger.info(f"[Scheduler:retry] 待重试 {len(candidates)} 个，窗口内 {len(eligible)} 个")

    for plan in eligible:
        _attempt(
            run,
            plan,
            today,
            plan_repo=plan_repo,
            execution_log_repo=execution_log_repo,
            execution_gateway=execution_gateway,
            retry_policy=retry_policy,
            clock=clock,
        )
    return run


@dependency
def retry_failed_executions(
    *,
    plan_repo: PlanRepo | None = None,
    execution_log_repo: ExecutionLogRepo | None = None,
    execution_gateway: ExecutionGateway | None = None,
    retry_policy: RetryPolicy | None = None,
    clock: Clock | None = None,
) -> list[ExecutionLog]:
    """当日重试扫描，返回本次重试产生的执行日志。口径同 run_retry_sweep。"""
    run = run_retry_sweep(
        plan_repo=plan_repo,
        execution_log_repo=execution_log_repo,
        execution_gateway=execution_gateway,
        retry_policy=retry_policy,
        clock=clock,
    )
    return run.logs


@dependency
def get_execution_logs(
    *,
    plan_id: str,
    execution_log_repo: ExecutionLogRepo | None = None,
) -> list[ExecutionLog]:
    """查询某计划的执行日志。"""
    return execution_log_repo.list_by_plan(plan_id)


@dependency
def get_all_execution_logs(
    *,
    execution_log_repo: ExecutionLogRepo | None = None,
) -> list[ExecutionLog]:
    """查询全部执行日志。"""
    return execution_log_repo.list_all()


# ========== 私有辅助函数 ==========


def _attempt(
    run: SchedulerRunResult,
    plan: Plan,
    day: date,
    **deps: Any,
) -> None:
    """执行单个计划并收集结果；意外异常隔离在单计划内。"""
    try:
        log = process_plan_execution(plan=plan, day=day, **deps)
    except Exception as err:  # noqa: BLE001
        logger.exception(f"[Scheduler] {plan.id} 处理异常，已跳过：{err}")
        run.errors[plan.id] = str(err)
        return
    run.logs.append(log)


def _call_gateway(gateway: ExecutionGateway, plan: Plan) -> ExecutionResult:
    """调用执行网关；网关抛出的任何异常（含超时）都转换为失败结果。"""
    try:
        return gateway.execute(plan)
    except Exception as err:  # noqa: BLE001
        logger.warning(f"[Scheduler] {plan.id} 网关异常：{err!r}")
        return ExecutionResult.failed(str(err) or type(err).__name__)


def _new_log_id(now: datetime) -> str:
    return f"LOG-{int(now.timestamp() * 1000)}-{secrets.token_hex(3)}"
