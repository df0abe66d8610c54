from __future__ import annotations

import sqlite3
from dataclasses import replace
from datetime import date, datetime
from decimal import Decimal

from sysplan.core.errors import ConcurrentUpdateError, PlanNotFoundError
from sysplan.core.models import Plan, PlanStatus

_COLUMNS = (
    "id",
    "plan_type",
    "client_id",
    "scheme_id",
    "source_scheme_id",
    "target_scheme_id",
    "amount",
    "start_date",
    "frequency",
    "installments",
    "executed_installments",
    "status",
    "next_execution_date",
    "last_execution_date",
    "created_at",
    "updated_at",
    "cancelled_at",
    "cancelled_reason",
    "failure_reason",
    "retry_count",
    "max_retries",
    "version",
)

_INSERT_SQL = (
    f"INSERT INTO plans ({', '.join(_COLUMNS)}) "
    f"VALUES ({', '.join('?' for _ in _COLUMNS)})"
)

_UPDATE_SQL = (
    f"UPDATE plans SET {', '.join(f'{c} = ?' for c in _COLUMNS[1:-1])}, version = version + 1 "
    "WHERE id = ? AND version = ?"
)


class PlanRepo:
    """
    计划仓储（SQLite）。

    说明：
    - 金额以 TEXT 存储 Decimal 字符串，日期/时间以 ISO 字符串存储；
    - list_due_on 走 (status, next_execution_date) 索引；
    - update 为版本比对写入（WHERE id = ? AND version = ?），多个连接/进程同时改同一计划时后写者失败；
    - 不做状态合法性校验，由 flows.plan 负责。
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self.conn = conn

    def add(self, plan: Plan) -> Plan:
        """
        新增计划。

        Raises:
            ValueError: id 已存在。
        """
        try:
            with self.conn:
                self.conn.execute(_INSERT_SQL, _plan_to_params(plan))
        except sqlite3.IntegrityError as exc:
            raise ValueError(f"计划已存在：{plan.id}") from exc
        return plan

    def get(self, plan_id: str) -> Plan | None:
        """按 id 读取计划，未找到返回 None。"""
        row = self.conn.execute("SELECT * FROM plans WHERE id = ?", (plan_id,)).fetchone()
        if not row:
            return None
        return _row_to_plan(row)

    def list_by_status(self, status: PlanStatus | None = None) -> list[Plan]:
        """按状态筛选；status 为空时返回全部。"""
        if status is None:
            rows = self.conn.execute("SELECT * FROM plans ORDER BY created_at, id").fetchall()
        else:
            rows = self.conn.execute(
                "SELECT * FROM plans WHERE status = ? ORDER BY created_at, id",
                (status,),
            ).fetchall()
        return [_row_to_plan(r) for r in rows]

    def list_by_client(self, client_id: int) -> list[Plan]:
        """返回某客户的全部计划。"""
        rows = self.conn.execute(
            "SELECT * FROM plans WHERE client_id = ? ORDER BY created_at, id",
            (client_id,),
        ).fetchall()
        return [_row_to_plan(r) for r in rows]

    def list_due_on(self, day: date) -> list[Plan]:
        """返回 status=Active 且 next_execution_date == day 的计划。"""
        rows = self.conn.execute(
            """
            SELECT * FROM plans
            WHERE status = 'Active' AND next_execution_date = ?
            ORDER BY created_at, id
            """,
            (day.isoformat(),),
        ).fetchall()
        return [_row_to_plan(r) for r in rows]

    def update(self, plan: Plan) -> Plan:
        """
        按读取时的 version 写回计划，成功后 version + 1。

        Raises:
            PlanNotFoundError: 计划不存在。
            ConcurrentUpdateError: 库中 version 已不是 plan.version。
        """
        params = _plan_to_params(plan)
        with self.conn:
            cursor = self.conn.execute(_UPDATE_SQL, (*params[1:-1], plan.id, plan.version))
        if cursor.rowcount == 0:
            exists = self.conn.execute("SELECT 1 FROM plans WHERE id = ?", (plan.id,)).fetchone()
            if not exists:
                raise PlanNotFoundError(plan.id)
            raise ConcurrentUpdateError(plan.id, plan.version)
        return replace(plan, version=plan.version + 1)


def _iso(value: date | datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _plan_to_params(plan: Plan) -> tuple:
    """按 _COLUMNS 顺序生成 SQL 参数。"""
    return (
        plan.id,
        plan.plan_type,
        plan.client_id,
        plan.scheme_id,
        plan.source_scheme_id,
        plan.target_scheme_id,
        str(plan.amount),
        plan.start_date.isoformat(),
        plan.frequency,
        plan.installments,
        plan.executed_installments,
        plan.status,
        _iso(plan.next_execution_date),
        _iso(plan.last_execution_date),
        plan.created_at.isoformat(),
        _iso(plan.updated_at),
        _iso(plan.cancelled_at),
        plan.cancelled_reason,
        plan.failure_reason,
        plan.retry_count,
        plan.max_retries,
        plan.version,
    )


def _parse_date(value: str | None) -> date | None:
    return date.fromisoformat(value) if value else None


def _parse_datetime(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


def _row_to_plan(row: sqlite3.Row) -> Plan:
    """将 plans 表的 SQLite 行记录转换为 Plan 实体。"""
    return Plan(
        id=row["id"],
        plan_type=row["plan_type"],
        client_id=int(row["client_id"]),
        scheme_id=int(row["scheme_id"]),
        source_scheme_id=row["source_scheme_id"],
        target_scheme_id=row["target_scheme_id"],
        amount=Decimal(row["amount"]),
        start_date=date.fromisoformat(row["start_date"]),
        frequency=row["frequency"],
        installments=int(row["installments"]),
        executed_installments=int(row["executed_installments"]),
        status=row["status"],
        next_execution_date=_parse_date(row["next_execution_date"]),
        last_execution_date=_parse_datetime(row["last_execution_date"]),
        created_at=datetime.fromisoformat(row["created_at"]),
        updated_at=_parse_datetime(row["updated_at"]),
        cancelled_at=_parse_datetime(row["cancelled_at"]),
        cancelled_reason=row["cancelled_reason"],
        failure_reason=row["failure_reason"],
        retry_count=int(row["retry_count"]),
        max_retries=int(row["max_retries"]),
        version=int(row["version"]),
    )
