"""
Brute-force index backend: one serialized blob per generation in a KV store.

Queries deserialize the published blob and score every chunk. Publication
writes the new generation under its own key first and only then swaps the
``current`` pointer, so readers never see a partially written index. The
superseded blob survives one more publish so a reader that already holds the
old pointer can still load it.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

import numpy as np
from pydantic import BaseModel, ValidationError, model_validator

from ..errors import IndexStoreError, InvalidChunkMetadataError
from ..models import ContentType, make_snippet
from ..similarity import cosine_similarities
from .base import ChunkRecord, GenerationInfo, IndexHit, make_chunk_id
from .kv import DuckDBKeyValueStore


logger = logging.getLogger(__name__)

INDEX_KEY_PREFIX = "search-index:"
CURRENT_POINTER_KEY = "search-index:current"


class StoredDocument(BaseModel):
    document_id: str
    title: str
    content_type: ContentType
    chunks: list[str]
    embeddings: list[list[float]]

    @model_validator(mode="after")
    def _chunks_match_embeddings(self) -> StoredDocument:
        if len(self.chunks) != len(self.embeddings):
            raise ValueError(
                f"{self.document_id}: {len(self.chunks)} chunks but "
                f"{len(self.embeddings)} embeddings"
            )
        return self


class StoredIndex(BaseModel):
    generation: str
    updated_at: str
    documents: list[StoredDocument]

    @property
    def chunk_count(self) -> int:
        return sum(len(doc.chunks) for doc in self.documents)


class GenerationPointer(BaseModel):
    generation: str
    chunk_count: int
    document_count: int
    created_at: str
    # Superseded generation, kept until the next publish for in-flight readers.
    previous_generation: str | None = None

    def to_info(self) -> GenerationInfo:
        return GenerationInfo(
            generation=self.generation,
            chunk_count=self.chunk_count,
            document_count=self.document_count,
            created_at=self.created_at,
        )


def generation_key(generation: str) -> str:
    if generation == "current":
        raise ValueError("'current' is reserved for the generation pointer")
    return f"{INDEX_KEY_PREFIX}{generation}"


class BlobIndexStore:
    """Full-scan cosine search over a JSON blob stored in a KV store."""

    supports_filter_pushdown = False
    max_batch_size: int | None = None

    def __init__(self, kv: DuckDBKeyValueStore) -> None:
        self.kv = kv

    async def upsert(self, generation: str, records: list[ChunkRecord]) -> int:
        """Replace the whole blob of *generation* with *records*."""
        stored = StoredIndex(
            generation=generation,
            updated_at=datetime.now(timezone.utc).isoformat(),
            documents=self._group_documents(records),
        )
        await self.kv.put(generation_key(generation), stored.model_dump_json())
        logger.debug(
            "Wrote blob for generation %s (%d chunks)", generation, stored.chunk_count
        )
        return stored.chunk_count

    async def publish(self, generation: str) -> GenerationInfo:
        staged = await self._load(generation)
        if staged is None:
            raise IndexStoreError(f"Generation {generation} has not been written")

        previous = await self._pointer()
        retained: str | None = None
        if previous is not None:
            retained = (
                previous.generation
                if previous.generation != generation
                else previous.previous_generation
            )
        pointer = GenerationPointer(
            generation=generation,
            chunk_count=staged.chunk_count,
            document_count=len(staged.documents),
            created_at=staged.updated_at,
            previous_generation=retained,
        )
        await self.kv.put(CURRENT_POINTER_KEY, pointer.model_dump_json())
        # Only the generation superseded two publishes ago is dropped.
        stale = previous.previous_generation if previous is not None else None
        if stale is not None and stale not in (generation, retained):
            await self.kv.delete(generation_key(stale))
        logger.info(
            "Published generation %s (%d chunks, %d documents)",
            generation,
            pointer.chunk_count,
            pointer.document_count,
        )
        return pointer.to_info()

    async def discard(self, generation: str) -> None:
        current = await self._pointer()
        if current is not None and current.generation == generation:
            raise ValueError(f"Cannot discard the published generation {generation}")
        await self.kv.delete(generation_key(generation))

    async def query(
        self,
        vector: list[float],
        *,
        top_k: int | None = None,
        content_type: ContentType | None = None,
    ) -> list[IndexHit]:
        index = await self._published_index()
        if index is None:
            return []

        rows: list[tuple[StoredDocument, int]] = []
        vectors: list[list[float]] = []
        for doc in index.documents:
            if content_type is not None and doc.content_type != content_type:
                continue
            for ordinal, embedding in enumerate(doc.embeddings):
                rows.append((doc, ordinal))
                vectors.append(embedding)
        if not rows:
            return []

        try:
            scores = cosine_similarities(np.asarray(vectors, dtype=np.float64), vector)
        except ValueError as exc:
            raise IndexStoreError(str(exc)) from exc

        hits = [
            IndexHit(
                chunk_id=make_chunk_id(doc.document_id, ordinal),
                document_id=doc.document_id,
                ordinal=ordinal,
                title=doc.title,
                content_type=doc.content_type,
                snippet=make_snippet(doc.chunks[ordinal]),
                score=float(score),
            )
            for (doc, ordinal), score in zip(rows, scores)
        ]
        hits.sort(key=lambda hit: (-hit.score, hit.document_id, hit.ordinal))
        return hits if top_k is None else hits[:top_k]

    async def current_generation(self) -> GenerationInfo | None:
        pointer = await self._pointer()
        return pointer.to_info() if pointer is not None else None

    async def count_chunks(self) -> int:
        pointer = await self._pointer()
        return pointer.chunk_count if pointer is not None else 0

    async def _published_index(self) -> StoredIndex | None:
        # A publish can land between reading the pointer and loading its blob.
        # Re-reading the pointer once picks up the generation that replaced it.
        for _ in range(2):
            pointer = await self._pointer()
            if pointer is None:
                return None
            index = await self._load(pointer.generation)
            if index is not None:
                return index
            logger.debug(
                "Blob for generation %s vanished; re-reading pointer", pointer.generation
            )
        raise IndexStoreError(
            f"Published generation {pointer.generation} has no stored blob"
        )

    async def _pointer(self) -> GenerationPointer | None:
        raw = await self.kv.get(CURRENT_POINTER_KEY)
        if raw is None:
            return None
        try:
            return GenerationPointer.model_validate_json(raw)
        except ValidationError as exc:
            raise IndexStoreError(f"Corrupt generation pointer: {exc}") from exc

    async def _load(self, generation: str) -> StoredIndex | None:
        raw = await self.kv.get(generation_key(generation))
        if raw is None:
            return None
        try:
            return StoredIndex.model_validate_json(raw)
        except ValidationError as exc:
            raise IndexStoreError(f"Corrupt index blob for {generation}: {exc}") from exc

    @staticmethod
    def _group_documents(records: list[ChunkRecord]) -> list[StoredDocument]:
        grouped: dict[str, list[ChunkRecord]] = {}
        dim: int | None = None
        for record in records:
            metadata = record.metadata()
            if dim is None:
                dim = len(record.embedding)
            if not record.embedding or len(record.embedding) != dim:
                raise InvalidChunkMetadataError(
                    f"Chunk {record.id} has embedding dimension "
                    f"{len(record.embedding)}, expected {dim}"
                )
            grouped.setdefault(metadata.document_id, []).append(record)

        documents: list[StoredDocument] = []
        for document_id, chunk_records in grouped.items():
            chunk_records.sort(key=lambda rec: rec.ordinal)
            ordinals = [rec.ordinal for rec in chunk_records]
            if ordinals != list(range(len(chunk_records))):
                raise InvalidChunkMetadataError(
                    f"Document {document_id} has non-contiguous ordinals {ordinals}"
                )
            first = chunk_records[0]
            documents.append(
                StoredDocument(
                    document_id=document_id,
                    title=first.title,
                    content_type=first.content_type,
                    chunks=[rec.text for rec in chunk_records],
                    embeddings=[list(rec.embedding) for rec in chunk_records],
                )
            )
        return documents
