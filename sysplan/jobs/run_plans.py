from __future__ import annotations

import argparse
import sys
from datetime import date

from sysplan.core.config import get_log_level
from sysplan.core.log import log, setup_logging
from sysplan.flows.scheduler import run_scheduled_plans


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="python -m sysplan.jobs.run_plans",
        description="处理到期的系统化计划，可指定业务日",
    )
    parser.add_argument(
        "--day",
        help="业务日（YYYY-MM-DD，默认今天）",
    )
    return parser.parse_args()


def _parse_day(value: str | None) -> date | None:
    if not value:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError as exc:
        raise ValueError(f"日期格式无效：{value}（期望：YYYY-MM-DD）") from exc


def main() -> int:
    """
    计划执行任务入口：对当日到期的 Active 计划各发起一次执行。

    Returns:
        退出码：0=成功；5=未知错误。
    """
    try:
        setup_logging(get_log_level())
        args = _parse_args()
        day = _parse_day(getattr(args, "day", None))
        log(f"[Job] run_plans 开始：day={day or '今天'}")

        run = run_scheduled_plans(day=day)
        log(
            f"✅ {run.day} 共尝试 {run.attempted} 个计划：成功 {run.count('Success')}，"
            f"待重试 {run.count('Retrying')}，失败 {run.count('Failed')}；"
            f"已尝试跳过 {len(run.skipped)}，异常 {len(run.errors)}"
        )

        log("[Job] run_plans 结束")
        return 0
    except Exception as err:  # noqa: BLE001
        log(f"❌ 执行失败：run_plans - {err}")
        return 5


if __name__ == "__main__":
    sys.exit(main())
