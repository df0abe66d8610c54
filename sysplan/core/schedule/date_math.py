from __future__ import annotations

from calendar import monthrange
from datetime import date

from sysplan.core.models.plan import Frequency

_MONTHS_PER_PERIOD: dict[str, int] = {
    "Monthly": 1,
    "Quarterly": 3,
}


def add_months(day: date, months: int) -> date:
    """
    按月偏移日期；若目标月没有该日，顺延到月末最后一天。

    示例：2025-01-31 + 1 个月 → 2025-02-28；2024-01-31 + 1 个月 → 2024-02-29。
    """
    if months < 0:
        raise ValueError("months 必须 >= 0")
    total = day.month - 1 + months
    year = day.year + total // 12
    month = total % 12 + 1
    _, last_day = monthrange(year, month)
    return date(year, month, min(day.day, last_day))


def months_per_period(frequency: Frequency) -> int:
    """返回频率对应的月数（Monthly=1，Quarterly=3）。"""
    try:
        return _MONTHS_PER_PERIOD[frequency]
    except KeyError:
        raise ValueError(f"不支持的频率：{frequency}") from None


def next_execution_date(start_date: date, frequency: Frequency, executed_installments: int) -> date:
    """
    计算下一期执行日。

    口径：始终以 start_date 为锚点，偏移 (n+1) 个周期，n 为已执行期数。
    以锚点计算可避免短月顺延后日期逐期漂移（1/31 → 2/28 → 3/31）。

    Args:
        start_date: 计划首期执行日。
        frequency: Monthly / Quarterly。
        executed_installments: 已成功执行的期数（>=0）。

    Returns:
        下一期执行日。
    """
    if executed_installments < 0:
        raise ValueError("executed_installments 必须 >= 0")
    return add_months(start_date, (executed_installments + 1) * months_per_period(frequency))


def following_execution_date(
    start_date: date,
    frequency: Frequency,
    executed_installments: int,
    after: date | None = None,
) -> date:
    """
    计算成功执行后的下一期执行日，保证严格晚于 after。

    正常情况下等同于 next_execution_date；仅当频率在执行中途被修改、
    按锚点算出的日期不晚于刚执行的日期时，顺延到锚点序列中下一个更晚的日期。
    """
    n = executed_installments
    candidate = next_execution_date(start_date, frequency, n)
    while after is not None and candidate <= after:
        n += 1
        candidate = next_execution_date(start_date, frequency, n)
    return candidate
