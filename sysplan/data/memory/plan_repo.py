from __future__ import annotations

import threading
from dataclasses import replace
from datetime import date

from sysplan.core.errors import ConcurrentUpdateError, PlanNotFoundError
from sysplan.core.models import Plan, PlanStatus


class InMemoryPlanRepo:
    """
    计划仓储（进程内 dict）。

    说明：
    - 读写均返回副本，调用方修改返回对象不会影响存储，所有变更必须经 update 写回；
    - 内部加锁，可被多个线程共享；
    - update 按 version 比对写入，与 SQLite 实现口径一致；
    - 列表按 created_at、id 排序，保证输出稳定。
    """

    def __init__(self) -> None:
        self._plans: dict[str, Plan] = {}
        self._lock = threading.Lock()

    def add(self, plan: Plan) -> Plan:
        with self._lock:
            if plan.id in self._plans:
                raise ValueError(f"计划已存在：{plan.id}")
            self._plans[plan.id] = replace(plan)
        return replace(plan)

    def get(self, plan_id: str) -> Plan | None:
        with self._lock:
            plan = self._plans.get(plan_id)
            return replace(plan) if plan else None

    def list_by_status(self, status: PlanStatus | None = None) -> list[Plan]:
        return self._select(lambda p: status is None or p.status == status)

    def list_by_client(self, client_id: int) -> list[Plan]:
        return self._select(lambda p: p.client_id == client_id)

    def list_due_on(self, day: date) -> list[Plan]:
        return self._select(lambda p: p.status == "Active" and p.next_execution_date == day)

    def update(self, plan: Plan) -> Plan:
        with self._lock:
            current = self._plans.get(plan.id)
            if current is None:
                raise PlanNotFoundError(plan.id)
            if current.version != plan.version:
                raise ConcurrentUpdateError(plan.id, plan.version)
            stored = replace(plan, version=plan.version + 1)
            self._plans[plan.id] = stored
        return replace(stored)

    def clear(self) -> None:
        """清空全部计划（测试用）。"""
        with self._lock:
            self._plans.clear()

    def _select(self, predicate) -> list[Plan]:  # type: ignore[no-untyped-def]
        with self._lock:
            plans = [replace(p) for p in self._plans.values() if predicate(p)]
        return sorted(plans, key=lambda p: (p.created_at, p.id))
