from __future__ import annotations

import logging
import sqlite3
from pathlib import Path
from typing import Optional

from sysplan.core.config import enable_sql_debug, get_db_path

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 2

SCHEMA_DDL = """
CREATE TABLE IF NOT EXISTS plans (
    id TEXT PRIMARY KEY,
    plan_type TEXT NOT NULL,
    client_id INTEGER NOT NULL,
    scheme_id INTEGER NOT NULL,
    source_scheme_id INTEGER,
    target_scheme_id INTEGER,
    amount TEXT NOT NULL,
    start_date TEXT NOT NULL,
    frequency TEXT NOT NULL,
    installments INTEGER NOT NULL,
    executed_installments INTEGER NOT NULL DEFAULT 0,
    status TEXT NOT NULL,
    next_execution_date TEXT,
    last_execution_date TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT,
    cancelled_at TEXT,
    cancelled_reason TEXT,
    failure_reason TEXT,
    retry_count INTEGER NOT NULL DEFAULT 0,
    max_retries INTEGER NOT NULL DEFAULT 3,
    version INTEGER NOT NULL DEFAULT 0
);

CREATE INDEX IF NOT EXISTS idx_plans_status_next_date
ON plans(status, next_execution_date);

CREATE INDEX IF NOT EXISTS idx_plans_client
ON plans(client_id);

CREATE TABLE IF NOT EXISTS execution_logs (
    id TEXT PRIMARY KEY,
    plan_id TEXT NOT NULL,
    execution_date TEXT NOT NULL,
    execution_time TEXT NOT NULL,
    status TEXT NOT NULL,
    retry_count INTEGER NOT NULL,
    failure_reason TEXT,
    reference_id TEXT,
    created_at TEXT NOT NULL,
    FOREIGN KEY (plan_id) REFERENCES plans(id)
);

CREATE INDEX IF NOT EXISTS idx_execution_logs_plan
ON execution_logs(plan_id, execution_time);

CREATE TABLE IF NOT EXISTS plan_attempts (
    plan_id TEXT NOT NULL,
    day TEXT NOT NULL,
    PRIMARY KEY (plan_id, day)
);

CREATE TABLE IF NOT EXISTS meta (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL
);
"""


_SCHEMA_KEY = "schema_version"
_BUSY_TIMEOUT_SECONDS = 5.0


class DbHelper:
    """
    计划库（SQLite 文件）的打开与建表。

    一个 DbHelper 对应一个库文件并缓存一条连接，由 container 在进程内共享。
    多个进程可以各自持有 DbHelper 指向同一文件：写冲突靠 plans.version 比对发现，
    锁等待最长 _BUSY_TIMEOUT_SECONDS 秒。
    """

    def __init__(self, db_path: Optional[str] = None) -> None:
        self.db_path = Path(db_path or get_db_path())
        self._conn: Optional[sqlite3.Connection] = None

    def get_connection(self) -> sqlite3.Connection:
        """返回缓存连接，首次调用时打开（行以 sqlite3.Row 返回，外键约束开启）。"""
        if self._conn is None:
            self._conn = self._open()
        return self._conn

    def init_schema_if_needed(self) -> None:
        """
        建表（已存在则跳过）并登记 schema 版本。

        Raises:
            RuntimeError: 库文件的 schema 版本与程序不一致，需要重建。
        """
        conn = self.get_connection()
        with conn:
            conn.executescript(SCHEMA_DDL)
            found = _read_schema_version(conn)
            if found is None:
                conn.execute("INSERT INTO meta(key, value) VALUES (?, ?)", (_SCHEMA_KEY, str(SCHEMA_VERSION)))
                logger.info(f"[DbHelper] 新建计划库 {self.db_path}（schema v{SCHEMA_VERSION}）")
                return
        if found != SCHEMA_VERSION:
            raise RuntimeError(
                f"[DbHelper] {self.db_path} 的结构版本为 v{found}，程序要求 v{SCHEMA_VERSION}，"
                "请备份后删除该文件重新初始化。"
            )

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def _open(self) -> sqlite3.Connection:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(str(self.db_path), timeout=_BUSY_TIMEOUT_SECONDS)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        if enable_sql_debug():
            conn.set_trace_callback(lambda sql: logger.debug(f"[SQL] {sql}"))
        return conn


def _read_schema_version(conn: sqlite3.Connection) -> int | None:
    row = conn.execute("SELECT value FROM meta WHERE key = ?", (_SCHEMA_KEY,)).fetchone()
    return int(row["value"]) if row else None
