"""系统化计划（SIP/STP/SWP）管理 CLI。

用法：
    python -m sysplan.cli.plan create --type SIP --client 1 --scheme 101 \\
        --amount 5000 --start 2026-11-05 --freq Monthly --installments 12
    python -m sysplan.cli.plan create --type STP --client 1 --source 101 --target 202 \\
        --amount 2000 --start 2026-11-05 --freq Quarterly --installments 4
    python -m sysplan.cli.plan list --status Active
    python -m sysplan.cli.plan show --id SIP-20261019-7KQ2D
    python -m sysplan.cli.plan modify --id SIP-20261019-7KQ2D --amount 7500
    python -m sysplan.cli.plan cancel --id SIP-20261019-7KQ2D --reason "Client request"
    python -m sysplan.cli.plan logs --id SIP-20261019-7KQ2D
"""

from __future__ import annotations

import argparse
import sys
from dataclasses import fields
from datetime import date
from decimal import Decimal, InvalidOperation

from rich.console import Console
from rich.table import Table

from sysplan.core.config import get_log_level
from sysplan.core.log import log, setup_logging
from sysplan.core.models import FREQUENCIES, PLAN_STATUSES, PLAN_TYPES, ExecutionLog, Plan
from sysplan.flows.plan import (
    cancel_plan,
    create_plan,
    list_client_plans,
    list_plans,
    list_plans_due,
    modify_plan,
    require_plan,
)
from sysplan.flows.scheduler import get_all_execution_logs, get_execution_logs

console = Console()

_STATUS_STYLE = {
    "Active": "green",
    "Closed": "cyan",
    "Cancelled": "yellow",
    "Failed": "red",
    "Success": "green",
    "Retrying": "yellow",
}


def _parse_amount(value: str) -> Decimal:
    try:
        return Decimal(value)
    except InvalidOperation as exc:
        raise argparse.ArgumentTypeError(f"金额格式无效：{value}") from exc


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="python -m sysplan.cli.plan",
        description="系统化计划管理（SIP/STP/SWP）",
    )
    subparsers = parser.add_subparsers(dest="command", required=True, help="子命令")

    # ========== create 子命令 ==========
    create_parser = subparsers.add_parser("create", help="创建计划")
    create_parser.add_argument("--type", required=True, choices=PLAN_TYPES, help="计划类型")
    create_parser.add_argument("--client", required=True, type=int, help="客户 ID")
    create_parser.add_argument("--scheme", type=int, help="基金 ID（SIP/SWP）")
    create_parser.add_argument("--source", type=int, help="转出基金 ID（STP）")
    create_parser.add_argument("--target", type=int, help="转入基金 ID（STP）")
    create_parser.add_argument("--amount", required=True, type=_parse_amount, help="每期金额")
    create_parser.add_argument("--start", required=True, help="首期执行日（YYYY-MM-DD）")
    create_parser.add_argument("--freq", required=True, choices=FREQUENCIES, help="执行频率")
    create_parser.add_argument("--installments", required=True, type=int, help="总期数")
    create_parser.add_argument(
        "--skip-date-validation",
        action="store_true",
        help="跳过起始日校验（后台工具用，允许当天首期）",
    )

    # ========== list 子命令 ==========
    list_parser = subparsers.add_parser("list", help="列出计划")
    list_parser.add_argument("--status", choices=PLAN_STATUSES, help="按状态筛选")
    list_parser.add_argument("--client", type=int, help="按客户筛选")
    list_parser.add_argument("--due", help="仅列出某日到期的计划（YYYY-MM-DD）")

    # ========== show 子命令 ==========
    show_parser = subparsers.add_parser("show", help="查看计划详情")
    show_parser.add_argument("--id", required=True, help="计划 ID")

    # ========== modify 子命令 ==========
    modify_parser = subparsers.add_parser("modify", help="修改计划（金额/频率/期数）")
    modify_parser.add_argument("--id", required=True, help="计划 ID")
    modify_parser.add_argument("--amount", type=_parse_amount, help="新的每期金额")
    modify_parser.add_argument("--freq", choices=FREQUENCIES, help="新的频率")
    modify_parser.add_argument("--installments", type=int, help="新的总期数")

    # ========== cancel 子命令 ==========
    cancel_parser = subparsers.add_parser("cancel", help="取消计划")
    cancel_parser.add_argument("--id", required=True, help="计划 ID")
    cancel_parser.add_argument("--reason", help="取消原因")

    # ========== logs 子命令 ==========
    logs_parser = subparsers.add_parser("logs", help="查看执行日志")
    logs_parser.add_argument("--id", help="计划 ID（不填则显示全部）")

    return parser.parse_args(argv)


def _build_payload(args: argparse.Namespace) -> dict:
    payload: dict = {
        "amount": args.amount,
        "start_date": args.start,
        "frequency": args.freq,
        "installments": args.installments,
    }
    if args.type == "STP":
        payload["source_scheme_id"] = args.source
        payload["target_scheme_id"] = args.target
    else:
        payload["scheme_id"] = args.scheme
    return payload


def _do_create(args: argparse.Namespace) -> int:
    """执行 create 命令。"""
    try:
        log(f"[Plan:create] 创建 {args.type} 计划：client={args.client} {args.amount}/{args.freq}×{args.installments}")
        plan = create_plan(
            plan_type=args.type,
            client_id=args.client,
            payload=_build_payload(args),
            skip_date_validation=args.skip_date_validation,
        )
        log(f"✅ 计划 {plan.id} 创建成功，首期 {plan.next_execution_date}")
        return 0
    except ValueError as err:
        log(f"❌ 创建失败：{err}")
        return 4
    except Exception as err:  # noqa: BLE001
        log(f"❌ 创建计划失败：{err}")
        return 5


def _do_list(args: argparse.Namespace) -> int:
    """执行 list 命令。"""
    try:
        if args.due:
            plans = list_plans_due(day=date.fromisoformat(args.due))
        elif args.client is not None:
            plans = list_client_plans(client_id=args.client)
        else:
            plans = list_plans(status=args.status)
        if args.status:
            plans = [p for p in plans if p.status == args.status]

        if not plans:
            log("（无计划）")
            return 0

        console.print(_plans_table(plans))
        return 0
    except ValueError as err:
        log(f"❌ 查询失败：{err}")
        return 4
    except Exception as err:  # noqa: BLE001
        log(f"❌ 查询计划失败：{err}")
        return 5


def _do_show(args: argparse.Namespace) -> int:
    """执行 show 命令。"""
    try:
        plan = require_plan(plan_id=args.id)
        table = Table(title=f"计划 {plan.id}", show_header=False)
        table.add_column("字段", style="dim")
        table.add_column("值")
        for f in fields(plan):
            value = getattr(plan, f.name)
            if value is not None:
                table.add_row(f.name, str(value))
        console.print(table)
        return 0
    except ValueError as err:
        log(f"❌ 查询失败：{err}")
        return 4
    except Exception as err:  # noqa: BLE001
        log(f"❌ 查询计划失败：{err}")
        return 5


def _do_modify(args: argparse.Namespace) -> int:
    """执行 modify 命令。"""
    try:
        log(f"[Plan:modify] 修改计划：{args.id}")
        plan = modify_plan(
            plan_id=args.id,
            amount=args.amount,
            frequency=args.freq,
            installments=args.installments,
        )
        log(f"✅ 计划 {plan.id} 已修改：{plan.amount}/{plan.frequency}×{plan.installments}")
        return 0
    except ValueError as err:
        log(f"❌ 修改失败：{err}")
        return 4
    except Exception as err:  # noqa: BLE001
        log(f"❌ 修改计划失败：{err}")
        return 5


def _do_cancel(args: argparse.Namespace) -> int:
    """执行 cancel 命令。"""
    try:
        log(f"[Plan:cancel] 取消计划：{args.id}")
        cancel_plan(plan_id=args.id, reason=args.reason)
        log(f"✅ 计划 {args.id} 已取消")
        return 0
    except ValueError as err:
        log(f"❌ 取消失败：{err}")
        return 4
    except Exception as err:  # noqa: BLE001
        log(f"❌ 取消计划失败：{err}")
        return 5


def _do_logs(args: argparse.Namespace) -> int:
    """执行 logs 命令。"""
    try:
        logs = get_execution_logs(plan_id=args.id) if args.id else get_all_execution_logs()
        if not logs:
            log("（无执行日志）")
            return 0
        console.print(_logs_table(logs))
        return 0
    except Exception as err:  # noqa: BLE001
        log(f"❌ 查询执行日志失败：{err}")
        return 5


def _plans_table(plans: list[Plan]) -> Table:
    table = Table(title=f"共 {len(plans)} 个计划")
    for column in ("ID", "类型", "客户", "金额", "频率", "进度", "状态", "下一期", "重试", "失败原因"):
        table.add_column(column)
    for p in plans:
        style = _STATUS_STYLE.get(p.status, "")
        table.add_row(
            p.id,
            p.plan_type,
            str(p.client_id),
            str(p.amount),
            p.frequency,
            f"{p.executed_installments}/{p.installments}（剩余 {p.remaining_installments}）",
            f"[{style}]{p.status}[/{style}]" if style else p.status,
            str(p.next_execution_date or "-"),
            f"{p.retry_count}/{p.max_retries}",
            p.failure_reason or "",
        )
    return table


def _logs_table(logs: list[ExecutionLog]) -> Table:
    table = Table(title=f"共 {len(logs)} 条执行日志")
    for column in ("日志 ID", "计划", "业务日", "时间", "结果", "重试", "订单号", "失败原因"):
        table.add_column(column)
    for item in logs:
        style = _STATUS_STYLE.get(item.status, "")
        table.add_row(
            item.id,
            item.plan_id,
            item.execution_date.isoformat(),
            item.execution_time.strftime("%Y-%m-%d %H:%M:%S"),
            f"[{style}]{item.status}[/{style}]",
            str(item.retry_count),
            item.reference_id or "",
            item.failure_reason or "",
        )
    return table


def main(argv: list[str] | None = None) -> int:
    """
    计划管理 CLI。

    Returns:
        退出码：0=成功；1=未知命令；4=计划不存在/校验或状态错误；5=其他失败。
    """
    # 1. 解析参数
    args = _parse_args(argv)
    setup_logging(get_log_level())

    # 2. 路由到子命令
    if args.command == "create":
        return _do_create(args)
    elif args.command == "list":
        return _do_list(args)
    elif args.command == "show":
        return _do_show(args)
    elif args.command == "modify":
        return _do_modify(args)
    elif args.command == "cancel":
        return _do_cancel(args)
    elif args.command == "logs":
        return _do_logs(args)
    else:
        log(f"❌ 未知命令：{args.command}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
