from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Literal

ExecutionStatus = Literal["Success", "Failed", "Retrying"]
"""单次执行尝试的结果：成功 / 失败（当日不再重试）/ 失败但当日仍可重试。"""


@dataclass(slots=True, frozen=True)
class ExecutionResult:
    """
    执行网关返回的结果（值对象，而非异常）。

    - success=True 时 reference_id 为下单系统返回的订单号；
    - success=False 时 reason 为不透明的失败原因（如 "Insufficient funds"），
      调度器只负责记录，不做解析。
    """

    success: bool
    reference_id: str | None = None
    reason: str | None = None

    @classmethod
    def ok(cls, reference_id: str) -> ExecutionResult:
        return cls(success=True, reference_id=reference_id)

    @classmethod
    def failed(cls, reason: str) -> ExecutionResult:
        return cls(success=False, reason=reason)


@dataclass(slots=True, frozen=True)
class ExecutionLog:
    """
    执行日志，每次尝试一条，只追加不修改。

    字段说明：
    - execution_date: 业务日期（调度日）
    - execution_time: 实际尝试时间
    - retry_count: 记录时计划的 retry_count
    - reference_id: 成功时网关返回的订单号
    - failure_reason: 失败原因（成功时为空）

    仅用于审计与运维查询，调度决策不回读日志。
    """

    id: str
    plan_id: str
    execution_date: date
    execution_time: datetime
    status: ExecutionStatus
    retry_count: int
    created_at: datetime
    failure_reason: str | None = None
    reference_id: str | None = None
