from __future__ import annotations

import random
import time

from sysplan.core.models import ExecutionResult, Plan


class SimulatedGateway:
    """
    模拟执行网关（开发/演示用）。

    按固定成功率随机返回成功或 "Insufficient funds"；
    生产环境必须替换为 OrderGatewayClient。
    """

    def __init__(
        self,
        success_rate: float = 0.8,
        *,
        seed: int | None = None,
        failure_reason: str = "Insufficient funds",
    ) -> None:
        if not 0.0 <= success_rate <= 1.0:
            raise ValueError("success_rate 必须在 0..1 之间")
        self.success_rate = success_rate
        self.failure_reason = failure_reason
        self._rng = random.Random(seed)

    def execute(self, plan: Plan) -> ExecutionResult:
        if self._rng.random() < self.success_rate:
            suffix = "".join(self._rng.choices("ABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789", k=5))
            return ExecutionResult.ok(f"ORD-{int(time.time() * 1000)}-{suffix}")
        return ExecutionResult.failed(self.failure_reason)
