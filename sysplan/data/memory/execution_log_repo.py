from __future__ import annotations

import threading

from sysplan.core.models import ExecutionLog


class InMemoryExecutionLogRepo:
    """执行日志仓储（进程内列表，只追加）。"""

    def __init__(self) -> None:
        self._logs: list[ExecutionLog] = []
        self._lock = threading.Lock()

    def add(self, log: ExecutionLog) -> ExecutionLog:
        with self._lock:
            self._logs.append(log)
        return log

    def list_by_plan(self, plan_id: str) -> list[ExecutionLog]:
        with self._lock:
            return [log for log in self._logs if log.plan_id == plan_id]

    def list_all(self) -> list[ExecutionLog]:
        with self._lock:
            return list(self._logs)

    def clear(self) -> None:
        """清空全部日志（测试用）。"""
        with self._lock:
            self._logs.clear()
