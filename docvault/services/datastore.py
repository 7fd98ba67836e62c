"""Shared SQLite datastore handle with a single-writer guard.

One :class:`Datastore` instance owns one ``aiosqlite`` connection and one
``asyncio.Lock``.  It is created once in ``docvault/main.py`` and passed to
every repository (file registry, cleaning queue, job store, vector store)
through its constructor.

# ─── HOW THE GUARD WORKS ──────────────────────────────────────────────
#
#   async with datastore.session() as db:
#       await db.execute(...)
#
# ``session()`` awaits the lock, yields the connection, commits on normal
# exit and rolls back if the block raises.  Exactly one logical operation
# touches the database at a time; contenders wait instead of failing.
#
# Long jobs (ingestion, batch cleaning, re-indexing) open a short session
# per unit of work rather than holding the lock for the whole job, so a
# similarity query issued mid-job only waits for the current unit.
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

import asyncio
import sqlite3
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path

import aiosqlite
import structlog

from docvault.utils.errors import DatastoreError

logger = structlog.get_logger(logger_name=__name__)

_SCHEMA_SQL = """\
CREATE TABLE IF NOT EXISTS files (
    id            INTEGER PRIMARY KEY AUTOINCREMENT,
    filename      TEXT    NOT NULL,
    path          TEXT    NOT NULL UNIQUE,
    size          INTEGER NOT NULL DEFAULT 0,
    mime_type     TEXT    NOT NULL,
    content_hash  TEXT,
    created_at    TEXT    NOT NULL,
    updated_at    TEXT    NOT NULL
);

CREATE TABLE IF NOT EXISTS file_metadata (
    file_id  INTEGER PRIMARY KEY REFERENCES files(id) ON DELETE CASCADE,
    author   TEXT,
    topic    TEXT,
    tags     TEXT    NOT NULL DEFAULT '[]'
);

CREATE TABLE IF NOT EXISTS cleaning_queue (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    file_id         INTEGER NOT NULL REFERENCES files(id),
    task_type       TEXT    NOT NULL,
    status          TEXT    NOT NULL DEFAULT 'pending',
    priority        INTEGER NOT NULL DEFAULT 1,
    input_content   TEXT,
    output_content  TEXT,
    error_message   TEXT,
    created_at      TEXT    NOT NULL,
    started_at      TEXT,
    completed_at    TEXT
);

CREATE TABLE IF NOT EXISTS ingestion_jobs (
    id               INTEGER PRIMARY KEY AUTOINCREMENT,
    source_path      TEXT    NOT NULL,
    job_type         TEXT    NOT NULL,
    status           TEXT    NOT NULL DEFAULT 'pending',
    progress         REAL    NOT NULL DEFAULT 0.0,
    total_files      INTEGER NOT NULL DEFAULT 0,
    processed_files  INTEGER NOT NULL DEFAULT 0,
    error_count      INTEGER NOT NULL DEFAULT 0,
    created_at       TEXT    NOT NULL,
    started_at       TEXT,
    completed_at     TEXT,
    error_message    TEXT
);

CREATE TABLE IF NOT EXISTS vector_index (
    id            INTEGER PRIMARY KEY AUTOINCREMENT,
    content_id    INTEGER NOT NULL,
    content_type  TEXT    NOT NULL,
    chunk_index   INTEGER NOT NULL DEFAULT 0,
    text          TEXT    NOT NULL,
    vector        BLOB    NOT NULL,
    dimension     INTEGER NOT NULL,
    model_name    TEXT    NOT NULL,
    metadata      TEXT    NOT NULL DEFAULT '{}',
    created_at    TEXT    NOT NULL
);
"""

_CREATE_INDICES_SQL = [
    "CREATE INDEX IF NOT EXISTS idx_cleaning_pending ON cleaning_queue(status, priority DESC, created_at);",
    "CREATE INDEX IF NOT EXISTS idx_cleaning_file_type ON cleaning_queue(file_id, task_type);",
    "CREATE INDEX IF NOT EXISTS idx_vector_content ON vector_index(content_id, content_type);",
    "CREATE INDEX IF NOT EXISTS idx_vector_model ON vector_index(model_name);",
]


def utc_now() -> datetime:
    """Timezone-aware current time; every persisted timestamp goes through here."""
    return datetime.now(timezone.utc)


def to_db_time(value: datetime | None) -> str | None:
    """Serialize a timestamp as ISO-8601 so TEXT ordering matches time ordering."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


class Datastore:
    """Injected handle over the docvault SQLite database.

    Parameters
    ----------
    db_path:
        Database file path.  ``":memory:"`` is accepted for tests.
    """

    def __init__(self, db_path: str | Path) -> None:
        self._db_path = str(db_path)
        self._conn: aiosqlite.Connection | None = None
        self._lock = asyncio.Lock()

    @property
    def path(self) -> str:
        return self._db_path

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def open(self) -> None:
        """Connect and create the schema.

        Raises
        ------
        DatastoreError
            If the file cannot be created or opened.  Callers treat this as
            fatal: nothing in the pipeline can run without the datastore.
        """
        if self._conn is not None:
            return
        try:
            if self._db_path != ":memory:":
                Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)
            conn = await aiosqlite.connect(self._db_path)
            conn.row_factory = aiosqlite.Row
            await conn.execute("PRAGMA foreign_keys = ON;")
            await conn.executescript(_SCHEMA_SQL)
            for idx_sql in _CREATE_INDICES_SQL:
                await conn.execute(idx_sql)
            await conn.commit()
        except (OSError, sqlite3.Error) as exc:
            raise DatastoreError(
                message=f"Cannot open datastore at {self._db_path}: {exc}",
                provider_name="sqlite",
            ) from exc

        self._conn = conn
        logger.info("datastore_opened", path=self._db_path)

    async def close(self) -> None:
        if self._conn is None:
            return
        async with self._lock:
            await self._conn.close()
            self._conn = None
        logger.info("datastore_closed", path=self._db_path)

    # ------------------------------------------------------------------
    # Guarded access
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def session(self) -> AsyncIterator[aiosqlite.Connection]:
        """Hold the datastore guard for one logical operation.

        Commits when the block exits normally and rolls back when it raises.
        """
        if self._conn is None:
            raise DatastoreError(message="Datastore is not open", provider_name="sqlite")

        async with self._lock:
            try:
                yield self._conn
            except BaseException:
                await self._conn.rollback()
                raise
            else:
                await self._conn.commit()
