"""CLI 与定时任务入口（内存后端）。"""

import sys
from datetime import date

import pytest

from sysplan.cli import plan as plan_cli
from sysplan.cli import scheduler as scheduler_cli
from sysplan.core.dependency import get_registered_deps
from sysplan.flows.plan import list_plans
from sysplan.jobs import retry_plans, run_plans

CREATE_SIP = [
    "create",
    "--type", "SIP",
    "--client", "1",
    "--scheme", "101",
    "--amount", "5000",
    "--start", "2099-01-31",
    "--freq", "Monthly",
    "--installments", "12",
]


@pytest.fixture(autouse=True)
def _quiet_logging(monkeypatch):
    """CLI 入口不重配根 logger，保留 pytest 的日志捕获。"""
    monkeypatch.setattr(plan_cli, "setup_logging", lambda level: None)
    monkeypatch.setattr(scheduler_cli, "setup_logging", lambda level: None)
    monkeypatch.setattr(run_plans, "setup_logging", lambda level: None)
    monkeypatch.setattr(retry_plans, "setup_logging", lambda level: None)


def _only_plan_id() -> str:
    plans = list_plans()
    assert len(plans) == 1
    return plans[0].id


class TestPlanCli:
    def test_create_and_manage(self) -> None:
        assert plan_cli.main(CREATE_SIP) == 0
        plan_id = _only_plan_id()

        assert plan_cli.main(["list"]) == 0
        assert plan_cli.main(["list", "--status", "Active", "--client", "1"]) == 0
        assert plan_cli.main(["show", "--id", plan_id]) == 0
        assert plan_cli.main(["modify", "--id", plan_id, "--amount", "7500"]) == 0
        assert plan_cli.main(["cancel", "--id", plan_id, "--reason", "Client request"]) == 0

        assert list_plans(status="Cancelled")[0].amount == 7500

    def test_business_errors_exit_4(self) -> None:
        assert plan_cli.main(["show", "--id", "SIP-NOPE"]) == 4
        assert plan_cli.main(["cancel", "--id", "SIP-NOPE"]) == 4
        assert plan_cli.main(["modify", "--id", "SIP-NOPE", "--installments", "3"]) == 4

        stp_same = [arg if arg != "SIP" else "STP" for arg in CREATE_SIP if arg not in ("--scheme", "101")]
        assert plan_cli.main([*stp_same, "--source", "7", "--target", "7"]) == 4
        assert list_plans() == []

    def test_past_start_rejected_unless_bypassed(self) -> None:
        past = [arg if arg != "2099-01-31" else "2020-01-01" for arg in CREATE_SIP]
        assert plan_cli.main(past) == 4
        assert plan_cli.main([*past, "--skip-date-validation"]) == 0

    def test_logs_empty_and_filled(self, monkeypatch) -> None:
        assert plan_cli.main(["logs"]) == 0

        monkeypatch.setenv("SYSPLAN_GATEWAY_SUCCESS_RATE", "1")
        today = get_registered_deps()["clock"]().today()
        assert plan_cli.main([*_with_start(today), "--skip-date-validation"]) == 0
        assert scheduler_cli.main(["run", "--day", today.isoformat()]) == 0

        assert plan_cli.main(["logs", "--id", _only_plan_id()]) == 0
        assert plan_cli.main(["list", "--due", today.isoformat()]) == 0

    def test_usage_error(self) -> None:
        with pytest.raises(SystemExit):
            plan_cli.main(["explode"])


class TestSchedulerCli:
    def test_run_and_retry(self) -> None:
        assert scheduler_cli.main(["run"]) == 0
        assert scheduler_cli.main(["run", "--no-guard"]) == 0
        assert scheduler_cli.main(["retry"]) == 0

    def test_bad_day(self) -> None:
        assert scheduler_cli.main(["run", "--day", "19/10/2026"]) == 4


class TestJobs:
    def test_run_plans(self, monkeypatch) -> None:
        monkeypatch.setenv("SYSPLAN_GATEWAY_SUCCESS_RATE", "1")
        today = get_registered_deps()["clock"]().today()
        plan_cli.main([*_with_start(today), "--skip-date-validation"])

        monkeypatch.setattr(sys, "argv", ["run_plans", "--day", today.isoformat()])
        assert run_plans.main() == 0
        assert list_plans()[0].executed_installments == 1

    def test_run_plans_bad_day(self, monkeypatch) -> None:
        monkeypatch.setattr(sys, "argv", ["run_plans", "--day", "yesterday"])
        assert run_plans.main() == 5

    def test_retry_plans(self) -> None:
        assert retry_plans.main() == 0


def _with_start(day: date) -> list[str]:
    return [arg if arg != "2099-01-31" else day.isoformat() for arg in CREATE_SIP]
