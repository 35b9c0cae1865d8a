"""
Vector-table index backend with native top-K and content-type filtering.

Vectors of every generation live in one DuckDB table tagged with their
generation id. Exactly one generation row is active; publication flips it in
a single transaction and prunes the rest.
"""

from __future__ import annotations

import logging
import math
from datetime import datetime
from typing import Any

import duckdb

from ..errors import IndexStoreError, InvalidChunkMetadataError
from ..models import ContentType
from .base import ChunkRecord, GenerationInfo, IndexHit
from .kv import DuckDBBase


logger = logging.getLogger(__name__)

DEFAULT_MAX_BATCH_SIZE = 100

_ACTIVE_GENERATION = "(SELECT generation FROM index_generations WHERE is_active LIMIT 1)"


class VectorIndexStore(DuckDBBase):
    """Approximate-nearest-neighbour style store backed by a DuckDB vector table."""

    supports_filter_pushdown = True

    def __init__(
        self,
        db_path: str | None = None,
        *,
        connection: duckdb.DuckDBPyConnection | None = None,
        max_batch_size: int = DEFAULT_MAX_BATCH_SIZE,
        initialize: bool = True,
    ) -> None:
        if max_batch_size <= 0:
            raise ValueError("max_batch_size must be > 0")
        super().__init__(db_path, connection=connection)
        self.max_batch_size: int | None = max_batch_size
        if initialize:
            self.initialize()

    def initialize(self) -> None:
        self._conn.execute(
            """
            CREATE TABLE IF NOT EXISTS index_generations (
                generation VARCHAR PRIMARY KEY,
                is_active BOOLEAN NOT NULL DEFAULT FALSE,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            );
            """
        )
        self._conn.execute(
            """
            CREATE TABLE IF NOT EXISTS index_vectors (
                generation VARCHAR NOT NULL,
                id VARCHAR NOT NULL,
                document_id VARCHAR NOT NULL,
                ordinal INTEGER NOT NULL,
                title VARCHAR NOT NULL,
                content_type VARCHAR NOT NULL,
                snippet VARCHAR NOT NULL,
                embedding FLOAT[] NOT NULL
            );
            """
        )

    async def upsert(self, generation: str, records: list[ChunkRecord]) -> int:
        """Write one batch (at most ``max_batch_size`` records)."""
        if self.max_batch_size is not None and len(records) > self.max_batch_size:
            raise ValueError(
                f"Batch of {len(records)} exceeds max_batch_size={self.max_batch_size}; "
                "split it before calling upsert"
            )
        rows = self._validated_rows(generation, records)
        return await self._run(self._upsert, generation, rows)

    async def publish(self, generation: str) -> GenerationInfo:
        info = await self._run(self._publish, generation)
        logger.info(
            "Published generation %s (%d chunks, %d documents)",
            info.generation,
            info.chunk_count,
            info.document_count,
        )
        return info

    async def discard(self, generation: str) -> None:
        await self._run(self._discard, generation)

    async def query(
        self,
        vector: list[float],
        *,
        top_k: int | None = None,
        content_type: ContentType | None = None,
    ) -> list[IndexHit]:
        # Cosine similarity against a zero vector is undefined.
        if not vector or not any(vector):
            return []
        return await self._run(self._query, list(vector), top_k, content_type)

    async def current_generation(self) -> GenerationInfo | None:
        return await self._run(self._current_generation)

    async def count_chunks(self) -> int:
        info = await self.current_generation()
        return info.chunk_count if info is not None else 0

    @staticmethod
    def _validated_rows(generation: str, records: list[ChunkRecord]) -> list[tuple[Any, ...]]:
        rows: list[tuple[Any, ...]] = []
        seen: set[str] = set()
        dim: int | None = None
        for record in records:
            metadata = record.metadata()
            if record.id in seen:
                raise InvalidChunkMetadataError(f"Duplicate chunk {record.id} in batch")
            seen.add(record.id)
            if dim is None:
                dim = len(record.embedding)
            if len(record.embedding) != dim:
                raise InvalidChunkMetadataError(
                    f"Chunk {record.id} has embedding dimension "
                    f"{len(record.embedding)}, expected {dim}"
                )
            if math.fsum(value * value for value in record.embedding) == 0:
                raise InvalidChunkMetadataError(f"Chunk {record.id} has a zero embedding")
            rows.append(
                (
                    generation,
                    record.id,
                    metadata.document_id,
                    metadata.ordinal,
                    metadata.title,
                    metadata.content_type,
                    metadata.snippet,
                    [float(value) for value in record.embedding],
                )
            )
        return rows

    @staticmethod
    def _upsert(
        cursor: duckdb.DuckDBPyConnection,
        generation: str,
        rows: list[tuple[Any, ...]],
    ) -> int:
        cursor.begin()
        try:
            active = cursor.execute(
                "SELECT is_active FROM index_generations WHERE generation = ?",
                [generation],
            ).fetchone()
            if active is not None and bool(active[0]):
                raise IndexStoreError(
                    f"Generation {generation} is already published and read-only"
                )
            cursor.execute(
                """
                INSERT INTO index_generations (generation)
                VALUES (?)
                ON CONFLICT(generation) DO NOTHING
                """,
                [generation],
            )
            if rows:
                cursor.executemany(
                    "DELETE FROM index_vectors WHERE generation = ? AND id = ?",
                    [(row[0], row[1]) for row in rows],
                )
                cursor.executemany(
                    """
                    INSERT INTO index_vectors (
                        generation, id, document_id, ordinal, title,
                        content_type, snippet, embedding
                    )
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    rows,
                )
            cursor.commit()
        except Exception:
            cursor.rollback()
            raise
        return len(rows)

    @classmethod
    def _publish(cls, cursor: duckdb.DuckDBPyConnection, generation: str) -> GenerationInfo:
        cursor.begin()
        try:
            exists = cursor.execute(
                "SELECT 1 FROM index_generations WHERE generation = ?",
                [generation],
            ).fetchone()
            if exists is None:
                raise IndexStoreError(f"Generation {generation} has not been written")
            cursor.execute(
                "UPDATE index_generations SET is_active = (generation = ?)",
                [generation],
            )
            cursor.execute("DELETE FROM index_vectors WHERE generation <> ?", [generation])
            cursor.execute(
                "DELETE FROM index_generations WHERE generation <> ?", [generation]
            )
            cursor.commit()
        except Exception:
            cursor.rollback()
            raise
        info = cls._current_generation(cursor)
        if info is None:
            raise IndexStoreError(f"Generation {generation} vanished during publish")
        return info

    @staticmethod
    def _discard(cursor: duckdb.DuckDBPyConnection, generation: str) -> None:
        cursor.begin()
        try:
            row = cursor.execute(
                "SELECT is_active FROM index_generations WHERE generation = ?",
                [generation],
            ).fetchone()
            if row is not None and bool(row[0]):
                raise ValueError(f"Cannot discard the published generation {generation}")
            cursor.execute("DELETE FROM index_vectors WHERE generation = ?", [generation])
            cursor.execute(
                "DELETE FROM index_generations WHERE generation = ?", [generation]
            )
            cursor.commit()
        except Exception:
            cursor.rollback()
            raise

    @staticmethod
    def _query(
        cursor: duckdb.DuckDBPyConnection,
        vector: list[float],
        top_k: int | None,
        content_type: ContentType | None,
    ) -> list[IndexHit]:
        sql = f"""
            SELECT
                id,
                document_id,
                ordinal,
                title,
                content_type,
                snippet,
                list_cosine_similarity(embedding, CAST(? AS FLOAT[])) AS score
            FROM index_vectors
            WHERE generation = {_ACTIVE_GENERATION}
        """
        params: list[Any] = [vector]
        if content_type is not None:
            sql += " AND content_type = ?"
            params.append(content_type)
        sql += " ORDER BY score DESC, document_id ASC, ordinal ASC"
        if top_k is not None:
            sql += " LIMIT ?"
            params.append(max(top_k, 1))

        rows = cursor.execute(sql, params).fetchall()
        return [
            IndexHit(
                chunk_id=str(row[0]),
                document_id=str(row[1]),
                ordinal=int(row[2]),
                title=str(row[3]),
                content_type=row[4],
                snippet=str(row[5]),
                score=float(row[6]),
            )
            for row in rows
        ]

    @staticmethod
    def _current_generation(cursor: duckdb.DuckDBPyConnection) -> GenerationInfo | None:
        row = cursor.execute(
            f"""
            SELECT
                g.generation,
                g.created_at,
                (SELECT COUNT(*) FROM index_vectors v WHERE v.generation = g.generation),
                (
                    SELECT COUNT(DISTINCT v.document_id)
                    FROM index_vectors v
                    WHERE v.generation = g.generation
                )
            FROM index_generations g
            WHERE g.generation = {_ACTIVE_GENERATION}
            """
        ).fetchone()
        if row is None:
            return None
        created_at = row[1]
        return GenerationInfo(
            generation=str(row[0]),
            created_at=(
                created_at.isoformat() if isinstance(created_at, datetime) else str(created_at)
            ),
            chunk_count=int(row[2]),
            document_count=int(row[3]),
        )
