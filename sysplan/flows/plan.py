"""计划生命周期相关业务流程（创建 / 修改 / 取消 / 记录执行结果 / 查询）。"""

from __future__ import annotations

import logging
import secrets
import string
import threading
from contextlib import contextmanager
from dataclasses import replace
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Iterator

from pydantic import BaseModel, ValidationError

from sysplan.core.config import get_max_retries
from sysplan.core.dependency import dependency
from sysplan.core.errors import (
    AlreadyTerminalError,
    InvalidStateError,
    PlanNotFoundError,
    PlanValidationError,
    ScheduledTodayError,
)
from sysplan.core.models import Plan, PlanStatus, PlanType
from sysplan.core.protocols import Clock, PlanRepo
from sysplan.core.schedule.date_math import following_execution_date
from sysplan.schemas.requests import (
    ModifyPlanRequest,
    SipPlanRequest,
    StpPlanRequest,
    SwpPlanRequest,
)

logger = logging.getLogger(__name__)

_REQUEST_MODELS: dict[str, type[BaseModel]] = {
    "SIP": SipPlanRequest,
    "STP": StpPlanRequest,
    "SWP": SwpPlanRequest,
}

_ID_ALPHABET = string.ascii_uppercase + string.digits

# ==================== 单计划串行化 ====================

_LOCK_STRIPES = 64
_plan_locks: tuple[threading.RLock, ...] = tuple(threading.RLock() for _ in range(_LOCK_STRIPES))


def _lock_for(plan_id: str) -> threading.RLock:
    """按 hash(plan_id) 取条带锁；锁池大小固定，不随计划数量增长。"""
    return _plan_locks[hash(plan_id) % _LOCK_STRIPES]


@contextmanager
def _plan_lock(plan_id: str) -> Iterator[None]:
    """
    同一计划的读-改-写在进程内串行执行。

    不同计划可能落在同一条带上，此时也会串行，但不会死锁（每次只持有一把锁）。
    跨进程的并发写入由仓储的版本比对（ConcurrentUpdateError）兜底。
    """
    with _lock_for(plan_id):
        yield


# ==================== 创建 ====================


@dependency
def create_sip_plan(
    *,
    client_id: int,
    scheme_id: int,
    amount: Decimal,
    start_date: date,
    frequency: str,
    installments: int,
    skip_date_validation: bool = False,
    max_retries: int | None = None,
    plan_repo: PlanRepo | None = None,
    clock: Clock | None = None,
) -> Plan:
    """
    创建 SIP（定投）计划。

    Args:
        client_id: 客户 ID（> 0）。
        scheme_id: 申购基金 ID（> 0）。
        amount: 每期金额（> 0，Decimal）。
        start_date: 首期执行日，须晚于今天（按日比较）。
        frequency: Monthly / Quarterly。
        installments: 总期数（> 0）。
        skip_date_validation: 跳过"起始日在未来"校验（测试/后台工具用，允许当天首期）。
        max_retries: 最大重试次数（默认读取 SYSPLAN_MAX_RETRIES）。
        plan_repo: 计划仓储（可选，自动注入）。
        clock: 业务时钟（可选，自动注入）。

    Returns:
        新建的 Active 计划。

    Raises:
        PlanValidationError: 入参不合法，不会落库。
    """
    request = _validate(
        SipPlanRequest,
        scheme_id=scheme_id,
        amount=amount,
        start_date=start_date,
        frequency=frequency,
        installments=installments,
    )
    return _create(
        "SIP",
        client_id,
        request,
        skip_date_validation=skip_date_validation,
        max_retries=max_retries,
        plan_repo=plan_repo,
        clock=clock,
    )


@dependency
def create_stp_plan(
    *,
    client_id: int,
    source_scheme_id: int,
    target_scheme_id: int,
    amount: Decimal,
    start_date: date,
    frequency: str,
    installments: int,
    skip_date_validation: bool = False,
    max_retries: int | None = None,
    plan_repo: PlanRepo | None = None,
    clock: Clock | None = None,
) -> Plan:
    """
    创建 STP（定期转换）计划：从 source 转入 target，二者必须不同。

    主基金 scheme_id 取 target_scheme_id。其余参数同 create_sip_plan。

    Raises:
        PlanValidationError: 入参不合法或 source == target。
    """
    request = _validate(
        StpPlanRequest,
        source_scheme_id=source_scheme_id,
        target_scheme_id=target_scheme_id,
        amount=amount,
        start_date=start_date,
        frequency=frequency,
        installments=installments,
    )
    return _create(
        "STP",
        client_id,
        request,
        skip_date_validation=skip_date_validation,
        max_retries=max_retries,
        plan_repo=plan_repo,
        clock=clock,
    )


@dependency
def create_swp_plan(
    *,
    client_id: int,
    scheme_id: int,
    amount: Decimal,
    start_date: date,
    frequency: str,
    installments: int,
    skip_date_validation: bool = False,
    max_retries: int | None = None,
    plan_repo: PlanRepo | None = None,
    clock: Clock | None = None,
) -> Plan:
    """创建 SWP（定期赎回）计划。参数同 create_sip_plan。"""
    request = _validate(
        SwpPlanRequest,
        scheme_id=scheme_id,
        amount=amount,
        start_date=start_date,
        frequency=frequency,
        installments=installments,
    )
    return _create(
        "SWP",
        client_id,
        request,
        skip_date_validation=skip_date_validation,
        max_retries=max_retries,
        plan_repo=plan_repo,
        clock=clock,
    )


@dependency
def create_plan(
    *,
    plan_type: str,
    client_id: int,
    payload: dict[str, Any],
    skip_date_validation: bool = False,
    max_retries: int | None = None,
    plan_repo: PlanRepo | None = None,
    clock: Clock | None = None,
) -> Plan:
    """
    按计划类型分发创建（供 CLI / 上游表单直接传入原始字段）。

    Args:
        plan_type: SIP / STP / SWP（大小写不敏感）。
        client_id: 客户 ID。
        payload: 原始请求字段，按对应类型的 Schema 校验，不允许多余字段。

    Raises:
        PlanValidationError: 类型未知或入参不合法。
    """
    normalized = plan_type.strip().upper()
    model = _REQUEST_MODELS.get(normalized)
    if model is None:
        raise PlanValidationError(f"不支持的计划类型：{plan_type}")
    request = _validate(model, **payload)
    return _create(
        normalized,  # type: ignore[arg-type]
        client_id,
        request,
        skip_date_validation=skip_date_validation,
        max_retries=max_retries,
        plan_repo=plan_repo,
        clock=clock,
    )


# ==================== 修改 / 取消 ====================


@dependency
def modify_plan(
    *,
    plan_id: str,
    amount: Decimal | None = None,
    frequency: str | None = None,
    installments: int | None = None,
    plan_repo: PlanRepo | None = None,
    clock: Clock | None = None,
) -> Plan:
    """
    修改计划（仅 amount / frequency / installments，部分更新）。

    规则：
    - 仅 Active 计划可修改；
    - 今日待执行（next_execution_date == today）的计划禁止修改，避免改动执行窗口中的计划；
    - 新的总期数不得少于"已执行期数 + 1"，保证 Active 计划至少还有一期。

    Raises:
        PlanNotFoundError: 计划不存在。
        InvalidStateError: 计划非 Active。
        ScheduledTodayError: 计划今日待执行。
        PlanValidationError: 修改内容不合法或为空。
        ConcurrentUpdateError: 读取后计划已被其他进程修改。
    """
    with _plan_lock(plan_id):
        plan = _require(plan_repo, plan_id)
        if plan.status != "Active":
            raise InvalidStateError(f"只能修改 Active 计划：{plan_id}（当前 {plan.status}）")

        today = clock.today()
        if plan.next_execution_date == today:
            raise ScheduledTodayError(f"计划今日待执行，禁止修改：{plan_id}")

        raw = {"amount": amount, "frequency": frequency, "installments": installments}
        request = _validate(ModifyPlanRequest, **{k: v for k, v in raw.items() if v is not None})
        changes = request.changes()

        new_installments = changes.get("installments", plan.installments)
        if new_installments <= plan.executed_installments:
            raise PlanValidationError(
                f"总期数不得少于已执行期数 + 1：executed={plan.executed_installments}"
            )

        updated = replace(plan, **changes, updated_at=clock.now())
        updated = plan_repo.update(updated)

    logger.info(f"[Plan:modify] {plan_id} 已修改：{changes}")
    return updated


@dependency
def cancel_plan(
    *,
    plan_id: str,
    reason: str | None = None,
    plan_repo: PlanRepo | None = None,
    clock: Clock | None = None,
) -> Plan:
    """
    取消计划。

    Failed 计划也允许取消（报表口径以 Cancelled 为准）；
    取消后不再有下一期执行日。

    Raises:
        PlanNotFoundError: 计划不存在。
        AlreadyTerminalError: 计划已 Closed 或已 Cancelled。
        ConcurrentUpdateError: 读取后计划已被其他进程修改。
    """
    with _plan_lock(plan_id):
        plan = _require(plan_repo, plan_id)
        if plan.status == "Closed":
            raise AlreadyTerminalError(f"计划已完成，不能取消：{plan_id}")
        if plan.status == "Cancelled":
            raise AlreadyTerminalError(f"计划已取消：{plan_id}")

        now = clock.now()
        cancelled = replace(
            plan,
            status="Cancelled",
            next_execution_date=None,
            cancelled_at=now,
            cancelled_reason=reason,
            updated_at=now,
        )
        cancelled = plan_repo.update(cancelled)

    logger.info(f"[Plan:cancel] {plan_id} 已取消（原状态 {plan.status}）：reason={reason}")
    return cancelled


# ==================== 执行结果回写 ====================


@dependency
def mark_plan_execution(
    *,
    plan_id: str,
    success: bool,
    failure_reason: str | None = None,
    reference_id: str | None = None,
    plan_repo: PlanRepo | None = None,
    clock: Clock | None = None,
) -> Plan:
    """
    记录一次执行结果（调度器回调）。

    成功：
    - executed_installments + 1，retry_count 归零，清空 failure_reason；
    - 若已执行满期 → Closed 并清空 next_execution_date；否则按锚点规则计算下一期。

    失败：
    - retry_count + 1，记录 failure_reason（缺省为 "Execution failed"）；
    - retry_count >= max_retries → Failed（终态，清空 next_execution_date）；
    - 否则保持 Active，next_execution_date 不变，留待当日重试。

    reference_id 为下单系统返回的订单号，仅写入日志，计划本身不保存。

    Raises:
        PlanNotFoundError: 计划不存在。
        InvalidStateError: 计划非 Active。
        ConcurrentUpdateError: 读取后计划已被其他进程修改（如另一进程已取消），库中状态不被覆盖。
    """
    with _plan_lock(plan_id):
        plan = _require(plan_repo, plan_id)
        if plan.status != "Active":
            raise InvalidStateError(f"只能执行 Active 计划：{plan_id}（当前 {plan.status}）")

        now = clock.now()
        if success:
            updated = _apply_success(plan, now)
        else:
            updated = _apply_failure(plan, failure_reason or "Execution failed", now)
        updated = plan_repo.update(updated)

    if success:
        logger.debug(f"[Plan:execution] {plan_id} 第 {updated.executed_installments} 期成功：order={reference_id}")
    if updated.status != plan.status:
        logger.info(f"[Plan:execution] {plan_id} 状态变更：{plan.status} → {updated.status}")
    return updated


def _apply_success(plan: Plan, now: datetime) -> Plan:
    executed = plan.executed_installments + 1
    if executed >= plan.installments:
        return replace(
            plan,
            executed_installments=executed,
            status="Closed",
            next_execution_date=None,
            last_execution_date=now,
            retry_count=0,
            failure_reason=None,
            updated_at=now,
        )
    return replace(
        plan,
        executed_installments=executed,
        next_execution_date=following_execution_date(
            plan.start_date,
            plan.frequency,
            executed,
            after=plan.next_execution_date,
        ),
        last_execution_date=now,
        retry_count=0,
        failure_reason=None,
        updated_at=now,
    )


def _apply_failure(plan: Plan, reason: str, now: datetime) -> Plan:
    retry_count = plan.retry_count + 1
    if retry_count >= plan.max_retries:
        return replace(
            plan,
            retry_count=retry_count,
            failure_reason=reason,
            status="Failed",
            next_execution_date=None,
            updated_at=now,
        )
    return replace(
        plan,
        retry_count=retry_count,
        failure_reason=reason,
        updated_at=now,
    )


# ==================== 查询 ====================


@dependency
def get_plan(
    *,
    plan_id: str,
    plan_repo: PlanRepo | None = None,
) -> Plan | None:
    """按 id 读取计划，未找到返回 None。"""
    return plan_repo.get(plan_id)


@dependency
def require_plan(
    *,
    plan_id: str,
    plan_repo: PlanRepo | None = None,
) -> Plan:
    """
    按 id 读取计划。

    Raises:
        PlanNotFoundError: 计划不存在。
    """
    return _require(plan_repo, plan_id)


@dependency
def list_plans(
    *,
    status: PlanStatus | None = None,
    plan_repo: PlanRepo | None = None,
) -> list[Plan]:
    """按状态查询计划；status 为空时返回全部（运维控制台用）。"""
    return plan_repo.list_by_status(status)


@dependency
def list_client_plans(
    *,
    client_id: int,
    plan_repo: PlanRepo | None = None,
) -> list[Plan]:
    """查询某客户的全部计划（含终态）。"""
    return plan_repo.list_by_client(client_id)


@dependency
def list_plans_due(
    *,
    day: date,
    plan_repo: PlanRepo | None = None,
) -> list[Plan]:
    """查询某日到期（Active 且 next_execution_date == day）的计划。"""
    return plan_repo.list_due_on(day)


# ========== 私有辅助函数 ==========


def generate_plan_id(plan_type: PlanType, now: datetime) -> str:
    """生成计划 ID：{类型}-{YYYYMMDD}-{5 位大写字母数字}，类型前缀便于排查。"""
    token = "".join(secrets.choice(_ID_ALPHABET) for _ in range(5))
    return f"{plan_type}-{now:%Y%m%d}-{token}"


def _create(
    plan_type: PlanType,
    client_id: int,
    request: BaseModel,
    *,
    skip_date_validation: bool,
    max_retries: int | None,
    plan_repo: PlanRepo,
    clock: Clock,
) -> Plan:
    """校验与时间相关的规则并落库。"""
    if isinstance(client_id, bool) or not isinstance(client_id, int) or client_id <= 0:
        raise PlanValidationError(f"客户 ID 必须为正整数：{client_id}")

    retries = get_max_retries() if max_retries is None else max_retries
    if retries < 1:
        raise PlanValidationError(f"max_retries 必须 >= 1：{retries}")

    start_date: date = request.start_date  # type: ignore[attr-defined]
    if not skip_date_validation and start_date <= clock.today():
        raise PlanValidationError(f"起始日必须晚于今天：{start_date}")

    now = clock.now()
    plan_id = generate_plan_id(plan_type, now)
    while plan_repo.get(plan_id) is not None:
        plan_id = generate_plan_id(plan_type, now)

    if isinstance(request, StpPlanRequest):
        schemes = {
            "scheme_id": request.target_scheme_id,
            "source_scheme_id": request.source_scheme_id,
            "target_scheme_id": request.target_scheme_id,
        }
    else:
        schemes = {"scheme_id": request.scheme_id}  # type: ignore[attr-defined]

    plan = Plan(
        id=plan_id,
        plan_type=plan_type,
        client_id=client_id,
        amount=request.amount,  # type: ignore[attr-defined]
        start_date=start_date,
        frequency=request.frequency,  # type: ignore[attr-defined]
        installments=request.installments,  # type: ignore[attr-defined]
        created_at=now,
        status="Active",
        executed_installments=0,
        next_execution_date=start_date,
        retry_count=0,
        max_retries=retries,
        **schemes,
    )
    saved = plan_repo.add(plan)
    logger.info(
        f"[Plan:create] {saved.id} client={client_id} amount={saved.amount} "
        f"{saved.frequency}×{saved.installments} start={start_date}"
    )
    return saved


def _validate(model: type[BaseModel], **fields: Any) -> Any:
    """用 Pydantic 模型校验入参，失败统一转换为 PlanValidationError。"""
    try:
        return model(**fields)
    except ValidationError as err:
        raise PlanValidationError(_format_validation_error(err)) from err


def _format_validation_error(err: ValidationError) -> str:
    parts = []
    for item in err.errors():
        loc = ".".join(str(x) for x in item.get("loc", ())) or "request"
        parts.append(f"{loc}: {item.get('msg')}")
    return "入参校验失败：" + "; ".join(parts)


def _require(plan_repo: PlanRepo, plan_id: str) -> Plan:
    plan = plan_repo.get(plan_id)
    if plan is None:
        raise PlanNotFoundError(plan_id)
    return plan
