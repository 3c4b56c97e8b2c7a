"""Run record store (SQLite via aiosqlite).

Records are opaque JSON payloads keyed by run id, optionally grouped into a
batch (e.g. every sub-market of one event).
"""

from __future__ import annotations

import json
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

import aiosqlite

from climate_edge.config import get_settings

_CREATE_TABLE = """
CREATE TABLE IF NOT EXISTS runs (
    id TEXT PRIMARY KEY,
    kind TEXT NOT NULL,      -- "signal" or "backtest"
    batch_id TEXT,
    payload TEXT NOT NULL,   -- JSON
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
"""

_CREATE_INDEX = """
CREATE INDEX IF NOT EXISTS idx_runs_batch_id ON runs(batch_id);
"""


@dataclass(frozen=True)
class RunRecord:
    run_id: str
    kind: str
    batch_id: str | None
    payload: dict
    created_at: str
    updated_at: str


def _row_to_record(row: aiosqlite.Row) -> RunRecord:
    return RunRecord(
        run_id=row["id"],
        kind=row["kind"],
        batch_id=row["batch_id"],
        payload=json.loads(row["payload"]),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


class RunStore:
    """Persist and look up run records."""

    def __init__(self, db_path: Path | None = None) -> None:
        self._db_path = db_path if db_path is not None else get_settings().db_path

    async def _ensure_db(self) -> None:
        """Create database and tables if they don't exist."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        async with aiosqlite.connect(str(self._db_path)) as db:
            await db.execute(_CREATE_TABLE)
            await db.execute(_CREATE_INDEX)
            await db.commit()

    async def save(self, kind: str, payload: dict, batch_id: str | None = None) -> str:
        """Store a payload. Returns the new run id."""
        await self._ensure_db()
        run_id = uuid.uuid4().hex
        now = datetime.now(timezone.utc).isoformat()
        async with aiosqlite.connect(str(self._db_path)) as db:
            await db.execute(
                """INSERT INTO runs (id, kind, batch_id, payload, created_at, updated_at)
                   VALUES (?, ?, ?, ?, ?, ?)""",
                (run_id, kind, batch_id, json.dumps(payload), now, now),
            )
            await db.commit()
        return run_id

    async def get(self, run_id: str) -> RunRecord | None:
        await self._ensure_db()
        async with aiosqlite.connect(str(self._db_path)) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute("SELECT * FROM runs WHERE id = ?", (run_id,))
            row = await cursor.fetchone()
        return _row_to_record(row) if row is not None else None

    async def list_batch(self, batch_id: str) -> list[RunRecord]:
        """All records of a batch, oldest first."""
        await self._ensure_db()
        async with aiosqlite.connect(str(self._db_path)) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(
                "SELECT * FROM runs WHERE batch_id = ? ORDER BY created_at, rowid",
                (batch_id,),
            )
            rows = await cursor.fetchall()
        return [_row_to_record(row) for row in rows]

    async def update(self, run_id: str, payload: dict) -> bool:
        """Replace a record's payload. Returns False if the run does not exist."""
        await self._ensure_db()
        now = datetime.now(timezone.utc).isoformat()
        async with aiosqlite.connect(str(self._db_path)) as db:
            cursor = await db.execute(
                "UPDATE runs SET payload = ?, updated_at = ? WHERE id = ?",
                (json.dumps(payload), now, run_id),
            )
            await db.commit()
            return cursor.rowcount > 0

    async def recent(self, kind: str | None = None, limit: int = 20) -> list[RunRecord]:
        """Most recent records, newest first."""
        await self._ensure_db()
        async with aiosqlite.connect(str(self._db_path)) as db:
            db.row_factory = aiosqlite.Row
            if kind is None:
                cursor = await db.execute(
                    "SELECT * FROM runs ORDER BY created_at DESC, rowid DESC LIMIT ?",
                    (limit,),
                )
            else:
                cursor = await db.execute(
                    "SELECT * FROM runs WHERE kind = ? ORDER BY created_at DESC, rowid DESC LIMIT ?",
                    (kind, limit),
                )
            rows = await cursor.fetchall()
        return [_row_to_record(row) for row in rows]
