from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, time, timedelta

DEFAULT_CUTOFF = time(15, 0)
DEFAULT_RETRY_WINDOWS: tuple[timedelta, ...] = (timedelta(hours=2), timedelta(hours=1))


def parse_cutoff(value: str) -> time:
    """
    解析截止时间字符串（HH:MM）。

    Raises:
        ValueError: 格式无效。
    """
    try:
        return time.fromisoformat(value.strip())
    except ValueError as exc:
        raise ValueError(f"截止时间格式无效：{value}（期望：HH:MM）") from exc


@dataclass(slots=True, frozen=True)
class RetryPolicy:
    """
    当日截止与重试窗口策略（Policy Object）。

    - cutoff: 每日截止时间，过后当日不再尝试；
    - retry_windows: 重试窗口相对截止时间的提前量，下标即 retry_count。

    默认口径（截止 15:00）：
    - retry_count=0 → 截止前 2 小时（13:00）起可重试；
    - retry_count=1 → 截止前 1 小时（14:00）起可重试；
    - retry_count>=2 → 无窗口，当日不再重试。
    """

    cutoff: time = DEFAULT_CUTOFF
    retry_windows: tuple[timedelta, ...] = DEFAULT_RETRY_WINDOWS

    def __post_init__(self) -> None:
        for lead in self.retry_windows:
            if lead <= timedelta(0):
                raise ValueError("重试窗口提前量必须 > 0")

    def cutoff_at(self, now: datetime) -> datetime:
        """返回 now 所在业务日的截止时刻（沿用 now 的时区）。"""
        return datetime.combine(now.date(), self.cutoff, tzinfo=now.tzinfo)

    def is_before_cutoff(self, now: datetime) -> bool:
        return now < self.cutoff_at(now)

    def window_opens_at(self, retry_count: int, now: datetime) -> datetime | None:
        """返回该 retry_count 对应的重试窗口开放时刻；无可用窗口返回 None。"""
        if retry_count < 0 or retry_count >= len(self.retry_windows):
            return None
        return self.cutoff_at(now) - self.retry_windows[retry_count]

    def can_retry_now(self, retry_count: int, max_retries: int, now: datetime) -> bool:
        """
        当前时刻是否允许重试（窗口开放 <= now < 截止）。

        调度器既用它筛选重试扫描的计划，也用它给失败的尝试打 Retrying / Failed 标签。
        """
        if retry_count >= max_retries:
            return False
        opens_at = self.window_opens_at(retry_count, now)
        if opens_at is None:
            return False
        return opens_at <= now < self.cutoff_at(now)
