"""Result sinks: where a finished session's (participant, score, total) is written.

A sink is called at most once per session. Failures are raised as SinkError;
the session engine reports them and carries on.
"""

from __future__ import annotations

import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Protocol

logger = logging.getLogger(__name__)


class SinkError(Exception):
    """Persisting a session result failed."""


class ResultSink(Protocol):
    def record(self, participant_name: str, score: int, total_possible: int) -> None: ...


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


class FileResultSink:
    """Append one tab-separated line per result: timestamp, name, score, total."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def record(self, participant_name: str, score: int, total_possible: int) -> None:
        line = f"{_utc_now()}\t{participant_name}\t{score}\t{total_possible}\n"
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with self.path.open("a", encoding="utf-8") as fh:
                fh.write(line)
        except (OSError, UnicodeError) as e:
            raise SinkError(f"could not append to {self.path}: {e}") from e
        logger.info("Appended result for %s to %s", participant_name, self.path)


def init_results_db(conn: sqlite3.Connection) -> None:
    conn.execute("PRAGMA journal_mode=WAL;")
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS results (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            participant TEXT NOT NULL,
            score INTEGER NOT NULL,
            total_possible INTEGER NOT NULL,
            recorded_at TEXT NOT NULL
        );
        """
    )


class SqliteResultSink:
    """Insert one row per result into a ``results`` table, creating it if needed."""

    def __init__(self, db_path: Path, timeout: float = 5.0):
        self.db_path = Path(db_path)
        # bounds how long a locked database can hold up session completion
        self.timeout = timeout

    def record(self, participant_name: str, score: int, total_possible: int) -> None:
        try:
            with sqlite3.connect(str(self.db_path), timeout=self.timeout) as conn:
                init_results_db(conn)
                conn.execute(
                    """
                    INSERT INTO results (participant, score, total_possible, recorded_at)
                    VALUES (?, ?, ?, ?)
                    """,
                    (participant_name, score, total_possible, _utc_now()),
                )
                conn.commit()
        except (sqlite3.Error, UnicodeError) as e:
            raise SinkError(f"could not insert result into {self.db_path}: {e}") from e
        logger.info("Inserted result for %s into %s", participant_name, self.db_path)


def read_results(db_path: Path) -> list[dict]:
    """Return recorded results, oldest first."""
    with sqlite3.connect(str(db_path)) as conn:
        conn.row_factory = sqlite3.Row
        exists = conn.execute(
            "SELECT 1 FROM sqlite_master WHERE type='table' AND name='results'"
        ).fetchone()
        if not exists:
            return []
        rows = conn.execute(
            "SELECT participant, score, total_possible, recorded_at FROM results ORDER BY id"
        ).fetchall()
    return [dict(r) for r in rows]
