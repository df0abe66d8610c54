from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Literal

PlanType = Literal["SIP", "STP", "SWP"]
"""计划类型：SIP（定投）/ STP（定期转换）/ SWP（定期赎回）。"""

Frequency = Literal["Monthly", "Quarterly"]
PlanStatus = Literal["Active", "Closed", "Cancelled", "Failed"]

PLAN_TYPES: tuple[str, ...] = ("SIP", "STP", "SWP")
FREQUENCIES: tuple[str, ...] = ("Monthly", "Quarterly")
PLAN_STATUSES: tuple[str, ...] = ("Active", "Closed", "Cancelled", "Failed")

DEFAULT_MAX_RETRIES = 3


@dataclass(slots=True)
class Plan:
    """
    系统化投资计划（SIP/STP/SWP）。

    说明：
    - 金额使用 Decimal，禁止 float；
    - scheme_id 为主基金；STP 时等于 target_scheme_id，并额外携带 source/target；
    - next_execution_date 仅在 status=Active 时存在；
    - retry_count 为当日重试计数，每次成功执行后归零；
    - version 为乐观并发版本号，仓储每次 update 成功后 +1；
    - 终态（Closed/Cancelled/Failed）不会回到 Active，计划永不删除。
    """

    id: str
    plan_type: PlanType
    client_id: int
    scheme_id: int
    amount: Decimal
    start_date: date
    frequency: Frequency
    installments: int
    created_at: datetime
    status: PlanStatus = "Active"
    executed_installments: int = 0
    next_execution_date: date | None = None
    source_scheme_id: int | None = None      # 仅 STP
    target_scheme_id: int | None = None      # 仅 STP
    last_execution_date: datetime | None = None
    updated_at: datetime | None = None
    cancelled_at: datetime | None = None
    cancelled_reason: str | None = None
    failure_reason: str | None = None
    retry_count: int = 0
    max_retries: int = DEFAULT_MAX_RETRIES
    version: int = 0

    @property
    def remaining_installments(self) -> int:
        """剩余期数。"""
        return self.installments - self.executed_installments
