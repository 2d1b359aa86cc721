from __future__ import annotations

import os
import sqlite3
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Iterable

from . import settings as _settings


def utc_now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _resolve_db_path() -> str:
    p = os.path.abspath(_settings.settings.db_path)
    parent = os.path.dirname(p)
    if parent:
        os.makedirs(parent, exist_ok=True)
    return p


_SCHEMA_READY: set[str] = set()


def connect() -> sqlite3.Connection:
    path = _resolve_db_path()
    conn = sqlite3.connect(path, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    if path not in _SCHEMA_READY:
        _create_schema(conn)
        _SCHEMA_READY.add(path)
    return conn


def _create_schema(conn: sqlite3.Connection) -> None:
    with conn:
        conn.executescript(
            """
            CREATE TABLE IF NOT EXISTS events (
              id INTEGER PRIMARY KEY AUTOINCREMENT,
              ts TEXT NOT NULL,
              level TEXT NOT NULL,
              host TEXT,
              port INTEGER,
              message TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS deployments (
              id INTEGER PRIMARY KEY AUTOINCREMENT,
              host TEXT NOT NULL,
              port INTEGER NOT NULL,
              image TEXT NOT NULL,
              container_id TEXT,
              status TEXT NOT NULL, -- ok|failed
              detail TEXT,
              created_at TEXT NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_events_ts ON events(ts);
            CREATE INDEX IF NOT EXISTS idx_deployments_host ON deployments(host, port);
            """
        )


def log_event(level: str, message: str, host: str | None = None, port: int | None = None) -> None:
    with connect() as conn:
        conn.execute(
            "INSERT INTO events (ts, level, host, port, message) VALUES (?, ?, ?, ?, ?)",
            (utc_now(), level.upper(), host, port, message),
        )


def latest_events(limit: int = 100) -> list[dict[str, Any]]:
    with connect() as conn:
        rows = conn.execute("SELECT * FROM events ORDER BY id DESC LIMIT ?", (limit,)).fetchall()
        return [dict(r) for r in rows]


@dataclass(frozen=True)
class DeploymentRow:
    id: int
    host: str
    port: int
    image: str
    container_id: str | None
    status: str
    detail: str | None
    created_at: str


def _rows_to_dataclass(rows: Iterable[sqlite3.Row], cls: Any) -> list[Any]:
    return [cls(**dict(r)) for r in rows]


def record_deployment(
    host: str,
    port: int,
    image: str,
    status: str,
    container_id: str | None = None,
    detail: str | None = None,
) -> DeploymentRow:
    with connect() as conn:
        cur = conn.execute(
            """
            INSERT INTO deployments (host, port, image, container_id, status, detail, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (host, port, image, container_id, status, detail, utc_now()),
        )
        row = conn.execute("SELECT * FROM deployments WHERE id=?", (cur.lastrowid,)).fetchone()
        return DeploymentRow(**dict(row))


def list_deployments(host: str | None = None, limit: int = 50) -> list[DeploymentRow]:
    with connect() as conn:
        if host:
            cur = conn.execute(
                "SELECT * FROM deployments WHERE host=? ORDER BY id DESC LIMIT ?",
                (host, limit),
            )
        else:
            cur = conn.execute("SELECT * FROM deployments ORDER BY id DESC LIMIT ?", (limit,))
        return _rows_to_dataclass(cur.fetchall(), DeploymentRow)
