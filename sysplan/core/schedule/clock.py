from __future__ import annotations

from datetime import date, datetime, timedelta
from zoneinfo import ZoneInfo


class SystemClock:
    """
    系统时钟：按配置时区读取当前时间。

    业务日期（today）= 该时区下的日期，避免服务器时区与业务时区不一致时跨日。
    """

    def __init__(self, timezone: str | None = None) -> None:
        self.tz = ZoneInfo(timezone) if timezone else None

    def now(self) -> datetime:
        return datetime.now(self.tz)

    def today(self) -> date:
        return self.now().date()


class FixedClock:
    """
    固定时钟（测试/回放用）。

    可通过 set/advance 模拟截止时间前后的任意时刻，无需真实等待。
    """

    def __init__(self, now: datetime) -> None:
        self._now = now

    def now(self) -> datetime:
        return self._now

    def today(self) -> date:
        return self._now.date()

    def set(self, now: datetime) -> None:
        self._now = now

    def advance(self, delta: timedelta) -> None:
        self._now = self._now + delta
