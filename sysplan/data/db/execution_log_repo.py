from __future__ import annotations

import sqlite3
from datetime import date, datetime

from sysplan.core.models import ExecutionLog


class ExecutionLogRepo:
    """
    执行日志仓储（SQLite）。

    只提供追加与查询，不提供更新/删除。
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self.conn = conn

    def add(self, log: ExecutionLog) -> ExecutionLog:
        """追加一条执行日志。"""
        with self.conn:
            self.conn.execute(
                """
                INSERT INTO execution_logs (
                    id,
                    plan_id,
                    execution_date,
                    execution_time,
                    status,
                    retry_count,
                    failure_reason,
                    reference_id,
                    created_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    log.id,
                    log.plan_id,
                    log.execution_date.isoformat(),
                    log.execution_time.isoformat(),
                    log.status,
                    log.retry_count,
                    log.failure_reason,
                    log.reference_id,
                    log.created_at.isoformat(),
                ),
            )
        return log

    def list_by_plan(self, plan_id: str) -> list[ExecutionLog]:
        """按计划查询日志。"""
        rows = self.conn.execute(
            "SELECT * FROM execution_logs WHERE plan_id = ? ORDER BY rowid",
            (plan_id,),
        ).fetchall()
        return [_row_to_execution_log(r) for r in rows]

    def list_all(self) -> list[ExecutionLog]:
        """查询全部日志。"""
        rows = self.conn.execute("SELECT * FROM execution_logs ORDER BY rowid").fetchall()
        return [_row_to_execution_log(r) for r in rows]


def _row_to_execution_log(row: sqlite3.Row) -> ExecutionLog:
    """将 execution_logs 表的 SQLite 行记录转换为 ExecutionLog 实体。"""
    return ExecutionLog(
        id=row["id"],
        plan_id=row["plan_id"],
        execution_date=date.fromisoformat(row["execution_date"]),
        execution_time=datetime.fromisoformat(row["execution_time"]),
        status=row["status"],
        retry_count=int(row["retry_count"]),
        failure_reason=row["failure_reason"],
        reference_id=row["reference_id"],
        created_at=datetime.fromisoformat(row["created_at"]),
    )
