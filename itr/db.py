from __future__ import annotations

import json
import os
import sqlite3
import sys
from datetime import datetime, timezone
from typing import Any

from .models import UpdateOutcome


def utc_now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _resolve_db_path(db_path: str) -> str:
    """Return a file path usable by sqlite.

    A bind-mounted path that did not exist on the host shows up as a
    directory inside the container; in that case the DB file goes inside it.
    """
    p = os.path.abspath(db_path)
    if os.path.isdir(p):
        p = os.path.join(p, "itr.db")

    parent = os.path.dirname(p)
    if parent and not os.path.exists(parent):
        os.makedirs(parent, exist_ok=True)

    return p


SCHEMA = """
CREATE TABLE IF NOT EXISTS events (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  ts TEXT NOT NULL,
  level TEXT NOT NULL,
  repository TEXT,
  version TEXT,
  message TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS runs (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  started_at TEXT NOT NULL,
  finished_at TEXT NOT NULL,
  repository TEXT NOT NULL,
  manifest_path TEXT NOT NULL,
  selected_version TEXT NOT NULL,
  source TEXT NOT NULL, -- registry|fallback
  status TEXT NOT NULL, -- updated|unchanged|not_found
  outcome_json TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_events_ts ON events(ts);
CREATE INDEX IF NOT EXISTS idx_runs_repository ON runs(repository);
"""


class EventLog:
    """Audit trail of reconciliation runs.

    Every event is echoed as one line on ``stream`` (stderr by default). When
    ``db_path`` is set, events and finished runs are also stored in SQLite.
    """

    def __init__(self, db_path: str | None = None, stream: Any = None, echo: bool = True):
        self.db_path = _resolve_db_path(db_path) if db_path else None
        self.stream = stream
        self.echo = echo
        if self.db_path:
            self.init_db()

    def connect(self) -> sqlite3.Connection:
        if not self.db_path:
            raise RuntimeError("EventLog has no database configured.")
        conn = sqlite3.connect(self.db_path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        return conn

    def init_db(self) -> None:
        conn = self.connect()
        try:
            with conn:
                conn.executescript(SCHEMA)
        finally:
            conn.close()

    def _execute(self, sql: str, params: tuple[Any, ...]) -> None:
        conn = self.connect()
        try:
            with conn:
                conn.execute(sql, params)
        finally:
            conn.close()

    def _query(self, sql: str, params: tuple[Any, ...]) -> list[sqlite3.Row]:
        conn = self.connect()
        try:
            return conn.execute(sql, params).fetchall()
        finally:
            conn.close()

    def log_event(self, level: str, message: str, repository: str | None = None, version: str | None = None) -> None:
        ts = utc_now()
        level = level.upper()
        if self.echo:
            print(f"{ts} {level:<5} {message}", file=self.stream or sys.stderr, flush=True)
        if self.db_path:
            self._execute(
                "INSERT INTO events (ts, level, repository, version, message) VALUES (?, ?, ?, ?, ?)",
                (ts, level, repository, version, message),
            )

    def record_run(self, outcome: UpdateOutcome) -> None:
        if not self.db_path:
            return
        self._execute(
            """
            INSERT INTO runs (started_at, finished_at, repository, manifest_path, selected_version, source, status, outcome_json)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                outcome.started_at,
                outcome.finished_at,
                outcome.repository,
                outcome.manifest_path,
                outcome.selected_version,
                outcome.source.value,
                outcome.patch.status.value,
                outcome.model_dump_json(),
            ),
        )

    def latest_events(self, limit: int = 100) -> list[dict[str, Any]]:
        if not self.db_path:
            return []
        rows = self._query("SELECT * FROM events ORDER BY id DESC LIMIT ?", (limit,))
        return [dict(r) for r in rows]

    def latest_runs(self, limit: int = 20) -> list[dict[str, Any]]:
        """Newest first; each item is a serialized UpdateOutcome plus its row id."""
        if not self.db_path:
            return []
        rows = self._query("SELECT id, outcome_json FROM runs ORDER BY id DESC LIMIT ?", (limit,))
        out: list[dict[str, Any]] = []
        for r in rows:
            item = json.loads(r["outcome_json"])
            item["id"] = r["id"]
            out.append(item)
        return out
