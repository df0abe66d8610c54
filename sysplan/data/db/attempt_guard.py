from __future__ import annotations

import sqlite3
from datetime import date


class AttemptGuard:
    """
    (plan_id, 业务日) 首次尝试标记（SQLite）。

    依赖 plan_attempts 表主键约束，INSERT OR IGNORE 的影响行数即为是否首次占用。
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self.conn = conn

    def claim(self, plan_id: str, day: date) -> bool:
        """占用 (plan_id, day)；首次占用返回 True。"""
        with self.conn:
            cursor = self.conn.execute(
                "INSERT OR IGNORE INTO plan_attempts (plan_id, day) VALUES (?, ?)",
                (plan_id, day.isoformat()),
            )
        return cursor.rowcount == 1
