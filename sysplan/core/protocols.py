from __future__ import annotations

from datetime import date, datetime
from typing import Protocol

from sysplan.core.models import ExecutionLog, ExecutionResult, Plan, PlanStatus

# ============================================================================
# Repository 接口（数据访问层协议）
# ============================================================================


class PlanRepo(Protocol):
    """
    计划存取（按 id 寻址，可按状态/客户/执行日筛选）。

    约定：仓储只负责存取，不做状态合法性校验；状态流转由 flows.plan 负责。
    实现：内存版（data.memory）与 SQLite 版（data.db），可互换。
    """

    def add(self, plan: Plan) -> Plan:
        """
        新增计划。

        Raises:
            ValueError: id 已存在。
        """

    def get(self, plan_id: str) -> Plan | None:
        """按 id 读取计划，未找到返回 None。"""

    def list_by_status(self, status: PlanStatus | None = None) -> list[Plan]:
        """按状态筛选；status 为空时返回全部。"""

    def list_by_client(self, client_id: int) -> list[Plan]:
        """返回某客户的全部计划（含终态）。"""

    def list_due_on(self, day: date) -> list[Plan]:
        """仅返回 status=Active 且 next_execution_date == day 的计划。"""

    def update(self, plan: Plan) -> Plan:
        """
        整体覆盖更新计划（乐观并发：仅当库中版本等于 plan.version 时写入）。

        Returns:
            写入后的计划，version 已 +1。

        Raises:
            PlanNotFoundError: 计划不存在。
            ConcurrentUpdateError: 库中版本已变化（读取后被其他写入者修改），不写入。
        """


class ExecutionLogRepo(Protocol):
    """执行日志存取（只追加）。"""

    def add(self, log: ExecutionLog) -> ExecutionLog:
        """追加一条执行日志。"""

    def list_by_plan(self, plan_id: str) -> list[ExecutionLog]:
        """按计划查询日志（按执行时间升序）。"""

    def list_all(self) -> list[ExecutionLog]:
        """查询全部日志（按执行时间升序）。"""


class AttemptGuard(Protocol):
    """
    (plan_id, 业务日) 首次尝试标记。

    用于防止外部触发器对同一业务日重复调用时重复下单。
    """

    def claim(self, plan_id: str, day: date) -> bool:
        """占用 (plan_id, day)；首次占用返回 True，已被占用返回 False。"""


# ============================================================================
# Service 接口（外部协作方 / 运行环境协议）
# ============================================================================


class ExecutionGateway(Protocol):
    """
    执行网关协议（下单系统）。

    对单期计划发起一次执行，返回成功（附订单号）或失败（附原因）。
    调度器将其视为不透明、可能不稳定的依赖：实现应自行设置超时，
    超时/异常由调度器统一转换为失败结果。
    """

    def execute(self, plan: Plan) -> ExecutionResult:
        """执行计划的当前一期。"""


class Clock(Protocol):
    """时钟协议：提供当前时间与业务日期，测试可注入固定时钟。"""

    def now(self) -> datetime: ...

    def today(self) -> date: ...
