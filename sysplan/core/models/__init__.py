from .execution import ExecutionLog, ExecutionResult, ExecutionStatus
from .plan import (
    DEFAULT_MAX_RETRIES,
    FREQUENCIES,
    PLAN_STATUSES,
    PLAN_TYPES,
    Frequency,
    Plan,
    PlanStatus,
    PlanType,
)

"""
领域模型聚合导出。

说明：
- 仅做名称聚合，不引入额外逻辑，便于上层模块统一引用；
- 代码也可以继续从各子模块直接导入。
"""

__all__ = [
    # 计划
    "Plan",
    "PlanType",
    "PlanStatus",
    "Frequency",
    "PLAN_TYPES",
    "PLAN_STATUSES",
    "FREQUENCIES",
    "DEFAULT_MAX_RETRIES",
    # 执行
    "ExecutionLog",
    "ExecutionResult",
    "ExecutionStatus",
]
