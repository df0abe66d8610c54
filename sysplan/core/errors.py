"""
计划相关业务异常。

约定：
- 全部继承自 ValueError，CLI 层统一按“业务错误”处理（退出码 4）；
- 执行网关的失败不是异常，而是 ExecutionResult 值，由调度器按重试策略处理。
"""

from __future__ import annotations


class PlanError(ValueError):
    """计划业务异常基类。"""


class PlanValidationError(PlanError):
    """创建/修改请求的入参不合法（金额、期数、起始日、STP 同基金等），不会落库。"""


class PlanNotFoundError(PlanError):
    """计划不存在。"""

    def __init__(self, plan_id: str) -> None:
        super().__init__(f"计划不存在：{plan_id}")
        self.plan_id = plan_id


class InvalidStateError(PlanError):
    """当前状态不允许该操作（修改非 Active 计划、执行非 Active 计划等），计划保持不变。"""


class ScheduledTodayError(InvalidStateError):
    """计划今日待执行，禁止在执行窗口内修改。"""


class AlreadyTerminalError(InvalidStateError):
    """计划已结束（Closed/Cancelled），不能再取消。"""


class ConcurrentUpdateError(PlanError):
    """计划在读取之后已被其他进程/连接改写（版本不一致），本次写入被拒绝，库中记录保持不变。"""

    def __init__(self, plan_id: str, version: int) -> None:
        super().__init__(f"计划已被并发修改：{plan_id}（读取时版本 v{version}），请重新读取后再试")
        self.plan_id = plan_id
        self.version = version
