from __future__ import annotations

import sys

from sysplan.core.config import get_log_level
from sysplan.core.log import log, setup_logging
from sysplan.flows.scheduler import run_retry_sweep


def main() -> int:
    """
    当日重试任务入口：在截止时间前按重试窗口重试失败的计划。

    建议在截止前 2 小时与 1 小时各触发一次。

    Returns:
        退出码：0=成功；5=未知错误。
    """
    try:
        setup_logging(get_log_level())
        log("[Job] retry_plans 开始")

        run = run_retry_sweep()
        log(
            f"✅ 重试 {run.attempted} 个计划：成功 {run.count('Success')}，"
            f"待重试 {run.count('Retrying')}，失败 {run.count('Failed')}"
        )

        log("[Job] retry_plans 结束")
        return 0
    except Exception as err:  # noqa: BLE001
        log(f"❌ 执行失败：retry_plans - {err}")
        return 5


if __name__ == "__main__":
    sys.exit(main())
