from __future__ import annotations

import threading
from datetime import date


class InMemoryAttemptGuard:
    """(plan_id, 业务日) 首次尝试标记（进程内集合）。"""

    def __init__(self) -> None:
        self._claimed: set[tuple[str, date]] = set()
        self._lock = threading.Lock()

    def claim(self, plan_id: str, day: date) -> bool:
        key = (plan_id, day)
        with self._lock:
            if key in self._claimed:
                return False
            self._claimed.add(key)
            return True
