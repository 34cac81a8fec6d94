from __future__ import annotations

import json
import os
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, Optional


DEFAULT_DB_PATH = ".data/product_type_export.db"
RESTART_ERROR = {
    "type": "ServiceRestart",
    "message": "Server restarted while the export was in progress",
    "trace_id": "restart",
}


def _db_path_from_env() -> Path:
    db_url = os.getenv("DATABASE_URL", "").strip()
    if not db_url:
        return Path(DEFAULT_DB_PATH)
    for prefix in ("sqlite:///", "sqlite://"):
        if db_url.startswith(prefix):
            return Path(db_url[len(prefix):])
    raise RuntimeError("DATABASE_URL must be sqlite:// or sqlite:///")


@contextmanager
def _connect() -> Iterator[sqlite3.Connection]:
    conn = sqlite3.connect(str(_db_path_from_env()), check_same_thread=False)
    try:
        conn.row_factory = sqlite3.Row
        yield conn
        conn.commit()
    finally:
        conn.close()


def _dumps(value: Optional[Dict[str, Any]]) -> Optional[str]:
    return json.dumps(value, ensure_ascii=False) if value is not None else None


def _loads(value: Optional[str]) -> Optional[Dict[str, Any]]:
    return json.loads(value) if value else None


def init_db() -> None:
    path = _db_path_from_env()
    path.parent.mkdir(parents=True, exist_ok=True)
    with _connect() as conn:
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS export_runs (
                run_id TEXT PRIMARY KEY,
                status TEXT NOT NULL,
                created_at TEXT NOT NULL,
                started_at TEXT,
                updated_at TEXT NOT NULL,
                params_json TEXT NOT NULL,
                summary_json TEXT,
                error_json TEXT
            )
            """
        )


def insert_run(run_id: str, params: Dict[str, Any], now_iso: str) -> None:
    with _connect() as conn:
        conn.execute(
            """
            INSERT INTO export_runs (run_id, status, created_at, updated_at, params_json)
            VALUES (?, 'queued', ?, ?, ?)
            """,
            (run_id, now_iso, now_iso, _dumps(params)),
        )


def update_run(
    run_id: str,
    now_iso: str,
    *,
    status: str,
    summary: Optional[Dict[str, Any]] = None,
    error: Optional[Dict[str, Any]] = None,
    started: bool = False,
) -> None:
    # summary/error are only overwritten when given
    with _connect() as conn:
        conn.execute(
            """
            UPDATE export_runs
            SET status = ?,
                summary_json = COALESCE(?, summary_json),
                error_json = COALESCE(?, error_json),
                started_at = CASE WHEN ? THEN ? ELSE started_at END,
                updated_at = ?
            WHERE run_id = ?
            """,
            (status, _dumps(summary), _dumps(error), 1 if started else 0, now_iso, now_iso, run_id),
        )


def get_run(run_id: str) -> Optional[Dict[str, Any]]:
    """Run row with params/summary/error decoded, or None."""
    with _connect() as conn:
        row = conn.execute("SELECT * FROM export_runs WHERE run_id = ?", (run_id,)).fetchone()
    if row is None:
        return None
    run = dict(row)
    for column in ("params", "summary", "error"):
        run[column] = _loads(run.pop(f"{column}_json"))
    return run


def mark_incomplete_runs_failed(now_iso: str) -> int:
    with _connect() as conn:
        cur = conn.execute(
            """
            UPDATE export_runs
            SET status = 'failed',
                updated_at = ?,
                error_json = ?
            WHERE status IN ('queued', 'running')
            """,
            (now_iso, _dumps(RESTART_ERROR)),
        )
        return cur.rowcount
