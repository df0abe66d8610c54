"""调度 CLI：手动触发到期执行与当日重试扫描。

用法：
    python -m sysplan.cli.scheduler run                  # 处理今日到期计划
    python -m sysplan.cli.scheduler run --day 2026-11-05 # 指定业务日
    python -m sysplan.cli.scheduler run --no-guard       # 允许同日重复首次尝试（排障用）
    python -m sysplan.cli.scheduler retry                # 当日重试扫描
"""

from __future__ import annotations

import argparse
import sys
from datetime import date

from rich.console import Console
from rich.panel import Panel

from sysplan.core.config import get_log_level
from sysplan.core.log import log, setup_logging
from sysplan.flows.scheduler import SchedulerRunResult, run_retry_sweep, run_scheduled_plans

console = Console()


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="python -m sysplan.cli.scheduler",
        description="计划调度（到期执行 / 当日重试）",
    )
    subparsers = parser.add_subparsers(dest="command", required=True, help="子命令")

    run_parser = subparsers.add_parser("run", help="处理某日到期计划")
    run_parser.add_argument("--day", help="业务日（YYYY-MM-DD，默认今天）")
    run_parser.add_argument(
        "--no-guard",
        action="store_true",
        help="不检查当日是否已尝试过",
    )

    subparsers.add_parser("retry", help="当日重试扫描（按重试窗口与截止时间）")

    return parser.parse_args(argv)


def _parse_day(value: str | None) -> date | None:
    if not value:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError as exc:
        raise ValueError(f"日期格式无效：{value}（期望：YYYY-MM-DD）") from exc


def _print_summary(title: str, run: SchedulerRunResult) -> None:
    lines = [
        f"业务日：{run.day}",
        f"尝试：{run.attempted}",
        f"成功：{run.count('Success')}",
        f"待重试：{run.count('Retrying')}",
        f"失败：{run.count('Failed')}",
    ]
    if run.skipped:
        lines.append(f"已尝试跳过：{', '.join(run.skipped)}")
    if run.errors:
        lines.append("异常：")
        lines.extend(f"  - {plan_id}: {msg}" for plan_id, msg in run.errors.items())
    console.print(Panel("\n".join(lines), title=title))


def _do_run(args: argparse.Namespace) -> int:
    """执行 run 命令。"""
    try:
        day = _parse_day(args.day)
        log(f"[Scheduler:run] 开始：day={day or '今天'} guard={not args.no_guard}")
        run = run_scheduled_plans(day=day, guard=not args.no_guard)
        _print_summary("到期执行", run)
        return 0
    except ValueError as err:
        log(f"❌ 执行失败：{err}")
        return 4
    except Exception as err:  # noqa: BLE001
        log(f"❌ 调度执行失败：{err}")
        return 5


def _do_retry(args: argparse.Namespace) -> int:
    """执行 retry 命令。"""
    try:
        log("[Scheduler:retry] 开始当日重试扫描")
        run = run_retry_sweep()
        _print_summary("当日重试", run)
        return 0
    except Exception as err:  # noqa: BLE001
        log(f"❌ 重试扫描失败：{err}")
        return 5


def main(argv: list[str] | None = None) -> int:
    """
    调度 CLI。

    Returns:
        退出码：0=成功；1=未知命令；4=参数错误；5=其他失败。
    """
    args = _parse_args(argv)
    setup_logging(get_log_level())

    if args.command == "run":
        return _do_run(args)
    elif args.command == "retry":
        return _do_retry(args)
    else:
        log(f"❌ 未知命令：{args.command}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
