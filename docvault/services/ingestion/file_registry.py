"""File registry: the ``files`` and ``file_metadata`` tables.

A path is registered once; later sightings refresh size, MIME type and
content hash in place.  The hash is only compared to tell whether the bytes
changed since the last run, never used as an identity.
"""

from __future__ import annotations

import json
from collections import Counter

import structlog

from docvault.models.files import FileMetadata, FileRecord
from docvault.services.datastore import Datastore, to_db_time, utc_now

logger = structlog.get_logger(logger_name=__name__)

_FILE_COLUMNS = "id, filename, path, size, mime_type, content_hash, created_at, updated_at"

_UPSERT_FILE_SQL = """\
INSERT INTO files (filename, path, size, mime_type, content_hash, created_at, updated_at)
VALUES (?, ?, ?, ?, ?, ?, ?)
ON CONFLICT(path) DO UPDATE SET
    filename     = excluded.filename,
    size         = excluded.size,
    mime_type    = excluded.mime_type,
    content_hash = excluded.content_hash,
    updated_at   = excluded.updated_at;
"""

_UPSERT_METADATA_SQL = """\
INSERT INTO file_metadata (file_id, author, topic, tags)
VALUES (?, ?, ?, ?)
ON CONFLICT(file_id) DO UPDATE SET
    author = excluded.author,
    topic  = excluded.topic,
    tags   = excluded.tags;
"""


class FileRegistry:
    """Datastore-backed registry of ingested files."""

    def __init__(self, datastore: Datastore) -> None:
        self._datastore = datastore

    # ---- Public API ----

    async def upsert_file(
        self,
        path: str,
        filename: str,
        size: int,
        mime_type: str,
        content_hash: str | None,
    ) -> tuple[FileRecord, bool]:
        """Register *path* or refresh its record.

        Returns
        -------
        tuple[FileRecord, bool]
            The stored record and whether the content hash differs from the
            previous sighting (``True`` for a new path).
        """
        now = to_db_time(utc_now())
        async with self._datastore.session() as db:
            cursor = await db.execute("SELECT content_hash FROM files WHERE path = ?;", (path,))
            previous = await cursor.fetchone()
            await db.execute(_UPSERT_FILE_SQL, (filename, path, size, mime_type, content_hash, now, now))
            cursor = await db.execute(f"SELECT {_FILE_COLUMNS} FROM files WHERE path = ?;", (path,))
            row = await cursor.fetchone()

        record = FileRecord(**dict(row))
        changed = previous is None or previous["content_hash"] != content_hash
        logger.debug(
            "file_registered",
            file_id=record.id,
            path=path,
            new=previous is None,
            changed=changed,
        )
        return record, changed

    async def get_file(self, file_id: int) -> FileRecord | None:
        async with self._datastore.session() as db:
            cursor = await db.execute(f"SELECT {_FILE_COLUMNS} FROM files WHERE id = ?;", (file_id,))
            row = await cursor.fetchone()
        return FileRecord(**dict(row)) if row else None

    async def get_by_path(self, path: str) -> FileRecord | None:
        async with self._datastore.session() as db:
            cursor = await db.execute(f"SELECT {_FILE_COLUMNS} FROM files WHERE path = ?;", (path,))
            row = await cursor.fetchone()
        return FileRecord(**dict(row)) if row else None

    async def list_files(self, limit: int | None = None) -> list[FileRecord]:
        async with self._datastore.session() as db:
            cursor = await db.execute(
                f"SELECT {_FILE_COLUMNS} FROM files ORDER BY id LIMIT ?;",
                (-1 if limit is None else limit,),
            )
            rows = await cursor.fetchall()
        return [FileRecord(**dict(row)) for row in rows]

    async def upsert_metadata(self, metadata: FileMetadata) -> None:
        async with self._datastore.session() as db:
            await db.execute(
                _UPSERT_METADATA_SQL,
                (metadata.file_id, metadata.author, metadata.topic, json.dumps(metadata.tags)),
            )

    async def get_metadata(self, file_id: int) -> FileMetadata | None:
        async with self._datastore.session() as db:
            cursor = await db.execute(
                "SELECT file_id, author, topic, tags FROM file_metadata WHERE file_id = ?;",
                (file_id,),
            )
            row = await cursor.fetchone()
        if row is None:
            return None
        return FileMetadata(
            file_id=row["file_id"],
            author=row["author"],
            topic=row["topic"],
            tags=json.loads(row["tags"] or "[]"),
        )

    async def file_stats(self) -> tuple[int, float, Counter[str]]:
        """``(file count, average size in bytes, files per MIME type)``."""
        async with self._datastore.session() as db:
            cursor = await db.execute("SELECT COUNT(*) AS n, AVG(size) AS avg_size FROM files;")
            totals = await cursor.fetchone()
            cursor = await db.execute("SELECT mime_type, COUNT(*) AS n FROM files GROUP BY mime_type;")
            by_type = Counter({row["mime_type"]: row["n"] for row in await cursor.fetchall()})
        return totals["n"], float(totals["avg_size"] or 0.0), by_type
