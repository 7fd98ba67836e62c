"""SQLite-backed vector store with an in-memory numpy mirror.

Every record is persisted to the ``vector_index`` table with its vector
serialized as little-endian float32 bytes (see
:mod:`docvault.utils.vector_codec`).  A mirror ``{id: (record, array)}`` is
kept in memory so similarity search never touches the database; the mirror
is rebuilt from the table by :meth:`SQLiteVectorStore.initialize` at
process start.

Search is an exhaustive O(N·D) scan: for each stored vector with the query's
dimensionality compute cosine similarity, keep hits at or above the
threshold, sort by descending score (ties by lower id) and truncate.
"""

from __future__ import annotations

import json
from collections import Counter
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime

import numpy as np
import structlog

from docvault.interfaces.vector_store_provider import IVectorStoreProvider
from docvault.models.vector import (
    NewVectorRecord,
    SimilarityResult,
    VectorRecord,
    VectorStoreStats,
)
from docvault.services.datastore import Datastore, to_db_time, utc_now
from docvault.utils.errors import VectorEncodingError, VectorStoreError
from docvault.utils.similarity import cosine_similarities
from docvault.utils.vector_codec import decode_vector, dimension_of, encode_vector

logger = structlog.get_logger(logger_name=__name__)

_INSERT_SQL = """\
INSERT INTO vector_index
    (content_id, content_type, chunk_index, text, vector, dimension, model_name, metadata, created_at)
VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?);
"""

_SELECT_ALL_SQL = """\
SELECT id, content_id, content_type, chunk_index, text, vector, dimension, model_name, metadata, created_at
FROM vector_index
ORDER BY id;
"""

_DELETE_SQL = "DELETE FROM vector_index WHERE id = ?;"

_SELECT_CONTENT_IDS_SQL = "SELECT id FROM vector_index WHERE content_id = ? AND content_type = ?;"

_DELETE_CONTENT_SQL = "DELETE FROM vector_index WHERE content_id = ? AND content_type = ?;"


@dataclass
class _MirrorEntry:
    record: VectorRecord
    array: np.ndarray


class SQLiteVectorStore(IVectorStoreProvider):
    """Durable vector storage plus linear-scan similarity search."""

    def __init__(self, datastore: Datastore) -> None:
        self._datastore = datastore
        self._mirror: dict[int, _MirrorEntry] = {}
        # model_name -> dimensionality fixed by its first stored vector
        self._model_dims: dict[str, int] = {}
        self._model_counts: Counter[str] = Counter()
        self._last_updated: datetime | None = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def initialize(self) -> None:
        """Rebuild the in-memory mirror by decoding every persisted row.

        Rows whose blob cannot be decoded, or whose float count disagrees
        with the stored ``dimension`` column, are logged and left out of
        the mirror; they stay on disk for inspection.
        """
        async with self._datastore.session() as db:
            cursor = await db.execute(_SELECT_ALL_SQL)
            rows = await cursor.fetchall()

        self._mirror.clear()
        self._model_dims.clear()
        self._model_counts.clear()
        self._last_updated = None

        skipped = 0
        for row in rows:
            try:
                size = dimension_of(row["vector"])
                array = decode_vector(row["vector"])
            except VectorEncodingError as exc:
                skipped += 1
                logger.warning("vector_row_skipped", record_id=row["id"], error=str(exc))
                continue
            if size != row["dimension"]:
                skipped += 1
                logger.warning(
                    "vector_row_skipped",
                    record_id=row["id"],
                    error=f"blob holds {size} floats, row says {row['dimension']}",
                )
                continue
            if array.size == 0:
                skipped += 1
                logger.warning("vector_row_skipped", record_id=row["id"], error="empty vector")
                continue
            record = self._row_to_record(row, array)
            self._remember(record, array)

        logger.info(
            "vector_mirror_rebuilt",
            records=len(self._mirror),
            skipped=skipped,
            models=sorted(self._model_dims),
        )

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    async def add(self, record: NewVectorRecord) -> VectorRecord:
        array = self._to_array(record)
        stored: VectorRecord | None = None
        try:
            async with self._datastore.session() as db:
                # Checked under the guard so two first inserts of a new model agree.
                self._check_dimension(record.model_name, int(array.size))
                stored = await self._insert(db, record, array)
                self._remember(stored, array)
        except BaseException:
            if stored is not None:
                self._forget(stored.id)
            raise

        logger.debug(
            "vector_added",
            record_id=stored.id,
            content_id=record.content_id,
            content_type=record.content_type,
            chunk_index=record.chunk_index,
        )
        return stored

    async def replace_content(
        self,
        content_id: int,
        content_type: str,
        records: Sequence[NewVectorRecord],
    ) -> tuple[int, list[VectorRecord]]:
        """Swap every chunk of ``(content_id, content_type)`` for *records* in one transaction.

        Either the old chunks are all gone and the new ones all stored, or
        (on any error) the table and the mirror are left as they were.
        """
        arrays = [self._to_array(record) for record in records]
        stored: list[tuple[VectorRecord, np.ndarray]] = []
        async with self._datastore.session() as db:
            batch_dims: dict[str, int] = {}
            for record, array in zip(records, arrays):
                self._check_dimension(record.model_name, int(array.size), batch_dims)
            cursor = await db.execute(_SELECT_CONTENT_IDS_SQL, (content_id, content_type))
            old_ids = [row["id"] for row in await cursor.fetchall()]
            await db.execute(_DELETE_CONTENT_SQL, (content_id, content_type))
            for record, array in zip(records, arrays):
                stored.append((await self._insert(db, record, array), array))

        for record_id in old_ids:
            self._forget(record_id)
        for record, array in stored:
            self._remember(record, array)
        if old_ids:
            self._last_updated = utc_now()
        logger.info(
            "vectors_replaced",
            content_id=content_id,
            content_type=content_type,
            removed=len(old_ids),
            added=len(stored),
        )
        return len(old_ids), [record for record, _ in stored]

    async def delete(self, record_id: int) -> bool:
        async with self._datastore.session() as db:
            cursor = await db.execute(_DELETE_SQL, (record_id,))
            removed = cursor.rowcount > 0

        self._forget(record_id)
        if removed:
            self._last_updated = utc_now()
        return removed

    async def delete_by_content(self, content_id: int, content_type: str) -> int:
        async with self._datastore.session() as db:
            cursor = await db.execute(_SELECT_CONTENT_IDS_SQL, (content_id, content_type))
            ids = [row["id"] for row in await cursor.fetchall()]
            await db.execute(_DELETE_CONTENT_SQL, (content_id, content_type))

        for record_id in ids:
            self._forget(record_id)
        if ids:
            self._last_updated = utc_now()
        logger.info(
            "vectors_deleted_by_content",
            content_id=content_id,
            content_type=content_type,
            removed=len(ids),
        )
        return len(ids)

    # ------------------------------------------------------------------
    # Reads (served from the mirror)
    # ------------------------------------------------------------------

    async def get(self, record_id: int) -> VectorRecord | None:
        entry = self._mirror.get(record_id)
        return entry.record if entry else None

    async def list_records(
        self,
        content_id: int | None = None,
        content_type: str | None = None,
    ) -> list[VectorRecord]:
        records = []
        for record_id in sorted(self._mirror):
            record = self._mirror[record_id].record
            if content_id is not None and record.content_id != content_id:
                continue
            if content_type is not None and record.content_type != content_type:
                continue
            records.append(record)
        return records

    async def search(
        self,
        query_vector: Sequence[float],
        limit: int | None = None,
        threshold: float = 0.0,
        model_name: str | None = None,
    ) -> list[SimilarityResult]:
        if limit is not None and limit < 1:
            return []

        query = np.asarray(query_vector, dtype=np.float32)
        if query.ndim != 1 or query.size == 0:
            return []

        # Only vectors of the query's dimensionality are comparable.
        candidates = [
            entry
            for entry in self._mirror.values()
            if entry.array.size == query.size
            and (model_name is None or entry.record.model_name == model_name)
        ]
        if not candidates:
            return []

        matrix = np.vstack([entry.array for entry in candidates])
        scores = cosine_similarities(query, matrix)

        hits = [
            (float(score), entry.record)
            for score, entry in zip(scores, candidates)
            if score >= threshold
        ]
        hits.sort(key=lambda hit: (-hit[0], hit[1].id))
        if limit is not None:
            hits = hits[:limit]

        return [
            SimilarityResult(
                record_id=record.id,
                content_id=record.content_id,
                content_type=record.content_type,
                chunk_index=record.chunk_index,
                text=record.text,
                model_name=record.model_name,
                metadata=record.metadata,
                similarity_score=score,
            )
            for score, record in hits
        ]

    async def get_stats(self) -> VectorStoreStats:
        dims = Counter(entry.array.size for entry in self._mirror.values())
        dimension = None
        if dims:
            # Most common dimension; ties resolve to the smaller one.
            dimension = min(dims.items(), key=lambda item: (-item[1], item[0]))[0]
        return VectorStoreStats(
            total_vectors=len(self._mirror),
            model_names=sorted(self._model_counts),
            dimension=dimension,
            last_updated=self._last_updated,
        )

    # ------------------------------------------------------------------
    # Mirror bookkeeping
    # ------------------------------------------------------------------

    def _remember(self, record: VectorRecord, array: np.ndarray) -> None:
        self._mirror[record.id] = _MirrorEntry(record=record, array=array)
        self._model_dims.setdefault(record.model_name, int(array.size))
        self._model_counts[record.model_name] += 1
        if self._last_updated is None or record.created_at > self._last_updated:
            self._last_updated = record.created_at

    @staticmethod
    def _to_array(record: NewVectorRecord) -> np.ndarray:
        array = np.asarray(record.vector, dtype=np.float32)
        if array.ndim != 1 or array.size == 0:
            raise VectorStoreError(message="Vector must be a non-empty 1-D sequence", provider_name="sqlite")
        if not np.all(np.isfinite(array)):
            raise VectorStoreError(message="Vector contains NaN or infinite values", provider_name="sqlite")
        return array

    def _check_dimension(self, model_name: str, size: int, batch_dims: dict[str, int] | None = None) -> None:
        expected = self._model_dims.get(model_name)
        if expected is None and batch_dims is not None:
            expected = batch_dims.setdefault(model_name, size)
        if expected is not None and expected != size:
            raise VectorStoreError(
                message=f"Model {model_name!r} stores {expected}-dimensional vectors, got {size}",
                provider_name="sqlite",
            )

    @staticmethod
    async def _insert(db, record: NewVectorRecord, array: np.ndarray) -> VectorRecord:  # noqa: ANN001
        created_at = utc_now()
        cursor = await db.execute(
            _INSERT_SQL,
            (
                record.content_id,
                record.content_type,
                record.chunk_index,
                record.text,
                encode_vector(array),
                int(array.size),
                record.model_name,
                json.dumps(record.metadata),
                to_db_time(created_at),
            ),
        )
        return VectorRecord(
            id=cursor.lastrowid,
            content_id=record.content_id,
            content_type=record.content_type,
            chunk_index=record.chunk_index,
            text=record.text,
            vector=array.tolist(),
            model_name=record.model_name,
            metadata=record.metadata,
            created_at=created_at,
        )

    def _forget(self, record_id: int) -> None:
        entry = self._mirror.pop(record_id, None)
        if entry is None:
            return
        model = entry.record.model_name
        self._model_counts[model] -= 1
        if self._model_counts[model] <= 0:
            del self._model_counts[model]
            self._model_dims.pop(model, None)

    @staticmethod
    def _row_to_record(row, array: np.ndarray) -> VectorRecord:  # noqa: ANN001
        return VectorRecord(
            id=row["id"],
            content_id=row["content_id"],
            content_type=row["content_type"],
            chunk_index=row["chunk_index"],
            text=row["text"],
            vector=array.tolist(),
            model_name=row["model_name"],
            metadata=json.loads(row["metadata"] or "{}"),
            created_at=row["created_at"],
        )
