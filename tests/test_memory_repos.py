"""内存仓储。"""

from dataclasses import replace
from datetime import date, datetime, timedelta
from decimal import Decimal

import pytest

from sysplan.core.errors import ConcurrentUpdateError, PlanNotFoundError
from sysplan.core.models import ExecutionLog, Plan
from sysplan.data.memory.attempt_guard import InMemoryAttemptGuard
from sysplan.data.memory.execution_log_repo import InMemoryExecutionLogRepo
from sysplan.data.memory.plan_repo import InMemoryPlanRepo

CREATED = datetime(2026, 10, 19, 9, 0)


def make_plan(plan_id: str, **overrides) -> Plan:
    fields = {
        "id": plan_id,
        "plan_type": "SIP",
        "client_id": 1,
        "scheme_id": 101,
        "amount": Decimal("5000.00"),
        "start_date": date(2026, 10, 20),
        "frequency": "Monthly",
        "installments": 12,
        "created_at": CREATED,
        "next_execution_date": date(2026, 10, 20),
    }
    fields.update(overrides)
    return Plan(**fields)


class TestInMemoryPlanRepo:
    def test_add_and_get(self) -> None:
        repo = InMemoryPlanRepo()
        plan = make_plan("SIP-1")
        repo.add(plan)
        assert repo.get("SIP-1") == plan
        assert repo.get("SIP-2") is None

    def test_duplicate_id_rejected(self) -> None:
        repo = InMemoryPlanRepo()
        repo.add(make_plan("SIP-1"))
        with pytest.raises(ValueError, match="计划已存在"):
            repo.add(make_plan("SIP-1"))

    def test_returns_copies(self) -> None:
        """修改读出的对象不影响存储，变更必须经 update 写回。"""
        repo = InMemoryPlanRepo()
        repo.add(make_plan("SIP-1"))

        loaded = repo.get("SIP-1")
        loaded.status = "Cancelled"

        assert repo.get("SIP-1").status == "Active"

    def test_update(self) -> None:
        repo = InMemoryPlanRepo()
        plan = repo.add(make_plan("SIP-1"))
        repo.update(replace(plan, executed_installments=1))
        assert repo.get("SIP-1").executed_installments == 1

    def test_update_bumps_version(self) -> None:
        repo = InMemoryPlanRepo()
        plan = repo.add(make_plan("SIP-1"))
        assert plan.version == 0

        saved = repo.update(replace(plan, retry_count=1))

        assert saved.version == 1
        assert repo.get("SIP-1") == saved

    def test_stale_update_rejected(self) -> None:
        """两个读者拿到同一版本：先写者成功，后写者报错且不覆盖。"""
        repo = InMemoryPlanRepo()
        repo.add(make_plan("SIP-1"))
        first = repo.get("SIP-1")
        second = repo.get("SIP-1")

        repo.update(replace(first, status="Cancelled", next_execution_date=None))
        with pytest.raises(ConcurrentUpdateError) as exc_info:
            repo.update(replace(second, retry_count=1))

        assert exc_info.value.plan_id == "SIP-1"
        stored = repo.get("SIP-1")
        assert stored.status == "Cancelled"
        assert stored.retry_count == 0
        assert stored.version == 1

    def test_update_unknown(self) -> None:
        with pytest.raises(PlanNotFoundError):
            InMemoryPlanRepo().update(make_plan("SIP-1"))

    def test_listing(self) -> None:
        repo = InMemoryPlanRepo()
        repo.add(make_plan("SIP-B", created_at=CREATED + timedelta(minutes=1)))
        repo.add(make_plan("SIP-A"))
        repo.add(make_plan("SIP-C", client_id=2, status="Cancelled", next_execution_date=None))

        assert [p.id for p in repo.list_by_status()] == ["SIP-A", "SIP-C", "SIP-B"]
        assert [p.id for p in repo.list_by_status("Cancelled")] == ["SIP-C"]
        assert [p.id for p in repo.list_by_client(2)] == ["SIP-C"]
        assert [p.id for p in repo.list_due_on(date(2026, 10, 20))] == ["SIP-A", "SIP-B"]

    def test_due_list_skips_non_active(self) -> None:
        repo = InMemoryPlanRepo()
        repo.add(make_plan("SIP-1", status="Failed"))
        assert repo.list_due_on(date(2026, 10, 20)) == []

    def test_clear(self) -> None:
        repo = InMemoryPlanRepo()
        repo.add(make_plan("SIP-1"))
        repo.clear()
        assert repo.list_by_status() == []


class TestInMemoryExecutionLogRepo:
    def test_append_and_query(self) -> None:
        repo = InMemoryExecutionLogRepo()
        for i, plan_id in enumerate(["SIP-1", "SIP-2", "SIP-1"]):
            repo.add(
                ExecutionLog(
                    id=f"LOG-{i}",
                    plan_id=plan_id,
                    execution_date=date(2026, 10, 20),
                    execution_time=CREATED,
                    status="Success",
                    retry_count=0,
                    created_at=CREATED,
                )
            )

        assert [log.id for log in repo.list_by_plan("SIP-1")] == ["LOG-0", "LOG-2"]
        assert len(repo.list_all()) == 3
        repo.clear()
        assert repo.list_all() == []


class TestInMemoryAttemptGuard:
    def test_claim_once_per_day(self) -> None:
        guard = InMemoryAttemptGuard()
        day = date(2026, 10, 20)
        assert guard.claim("SIP-1", day)
        assert not guard.claim("SIP-1", day)
        assert guard.claim("SIP-1", day + timedelta(days=1))
        assert guard.claim("SIP-2", day)
