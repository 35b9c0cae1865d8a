"""
Reindex orchestration: chunk, embed, and publish a fresh index generation.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from itertools import groupby
from typing import Sequence

from .chunker import ParagraphChunker
from ..embeddings import EmbeddingProvider
from ..errors import (
    EmbeddingError,
    IngestionError,
    InvalidChunkMetadataError,
    ReindexError,
    StorageError,
)
from ..models import Document
from ..search.cache import ResultCache
from ..sources import DocumentSource, collect_documents
from ..storage import ChunkRecord, IndexStore


logger = logging.getLogger(__name__)

DEFAULT_MAX_CONCURRENCY = 4


class ReindexState(str, Enum):
    IDLE = "idle"
    COLLECTING = "collecting"
    EMBEDDING = "embedding"
    WRITING = "writing"
    FAILED = "failed"


@dataclass(frozen=True)
class IndexingResult:
    """Summary output for a reindex run."""

    generation: str
    indexed_documents: int
    skipped_documents: int
    failed_documents: int
    chunks_written: int
    dropped_batches: int = 0

    @property
    def indexed_count(self) -> int:
        """Chunks that were embedded and written into the new generation."""
        return self.chunks_written


def new_generation_id() -> str:
    stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S%fZ")
    return f"{stamp}-{uuid.uuid4().hex[:8]}"


def batched(records: list[ChunkRecord], size: int | None) -> list[list[ChunkRecord]]:
    """Split *records* into upsert batches of at most *size* chunks.

    Batches break on document boundaries, so a dropped batch loses whole
    documents. Only a document with more than *size* chunks is split.
    """
    # An empty generation still needs one upsert so the store knows it exists.
    if size is None or not records:
        return [records]
    batches: list[list[ChunkRecord]] = []
    current: list[ChunkRecord] = []
    for _, group in groupby(records, key=lambda record: record.document_id):
        chunks = list(group)
        if current and len(current) + len(chunks) > size:
            batches.append(current)
            current = []
        if len(chunks) > size:
            batches.extend(
                chunks[start : start + size] for start in range(0, len(chunks), size)
            )
            continue
        current.extend(chunks)
    if current:
        batches.append(current)
    return batches


class IndexingPipeline:
    """Rebuild the whole search index from a corpus of documents.

    Runs are serialized by a lock. Readers keep seeing the previous generation
    until the new one is published.
    """

    def __init__(
        self,
        store: IndexStore,
        embedding_provider: EmbeddingProvider,
        chunker: ParagraphChunker | None = None,
        *,
        cache: ResultCache | None = None,
        max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
    ) -> None:
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be >= 1")
        self.store = store
        self.embedding_provider = embedding_provider
        self.chunker = chunker or ParagraphChunker()
        self.cache = cache
        self._max_concurrency = max_concurrency
        self._lock = asyncio.Lock()
        self._state = ReindexState.IDLE
        self.last_result: IndexingResult | None = None
        self.last_error: str | None = None

    @property
    def state(self) -> ReindexState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._lock.locked()

    async def reindex_sources(self, sources: Sequence[DocumentSource]) -> IndexingResult:
        """Collect documents from *sources*, then reindex them."""
        async with self._lock:
            try:
                self._state = ReindexState.COLLECTING
                try:
                    documents = await collect_documents(sources)
                except IngestionError as exc:
                    self._fail(f"ingestion failed: {exc}")
                    raise
                return await self._reindex(documents)
            finally:
                self._state = ReindexState.IDLE

    async def reindex(self, documents: list[Document]) -> IndexingResult:
        async with self._lock:
            try:
                return await self._reindex(documents)
            finally:
                self._state = ReindexState.IDLE

    async def _reindex(self, documents: list[Document]) -> IndexingResult:
        generation = new_generation_id()
        logger.info("Reindexing %d document(s) into generation %s", len(documents), generation)

        self._state = ReindexState.EMBEDDING
        unique = self._unique_documents(documents)
        semaphore = asyncio.Semaphore(self._max_concurrency)
        outcomes = await asyncio.gather(
            *(self._embed_document(document, semaphore) for document in unique)
        )

        records: list[ChunkRecord] = []
        indexed_documents = skipped_documents = failed_documents = 0
        for outcome in outcomes:
            if outcome is None:
                failed_documents += 1
            elif not outcome:
                skipped_documents += 1
            else:
                indexed_documents += 1
                records.extend(outcome)

        if failed_documents and not indexed_documents:
            self._fail(f"no document could be embedded ({failed_documents} failed)")
            raise ReindexError(
                f"Reindex aborted: all {failed_documents} embeddable document(s) failed"
            )

        self._state = ReindexState.WRITING
        chunks_written, dropped_batches = await self._write(generation, records)
        if records and chunks_written == 0:
            await self._discard(generation)
            self._fail("every upsert batch failed")
            raise ReindexError("Reindex aborted: no chunk could be written to the index")

        try:
            await self.store.publish(generation)
        except StorageError as exc:
            await self._discard(generation)
            self._fail(f"publish failed: {exc}")
            raise ReindexError(f"Reindex aborted: publish failed: {exc}") from exc

        if self.cache is not None:
            await self.cache.clear()

        result = IndexingResult(
            generation=generation,
            indexed_documents=indexed_documents,
            skipped_documents=skipped_documents,
            failed_documents=failed_documents,
            chunks_written=chunks_written,
            dropped_batches=dropped_batches,
        )
        logger.info(
            "Reindex complete: %d chunk(s) from %d document(s); "
            "%d skipped, %d failed, %d batch(es) dropped",
            result.chunks_written,
            result.indexed_documents,
            result.skipped_documents,
            result.failed_documents,
            result.dropped_batches,
        )
        self.last_result = result
        self.last_error = None
        return result

    async def _embed_document(
        self,
        document: Document,
        semaphore: asyncio.Semaphore,
    ) -> list[ChunkRecord] | None:
        """Return the document's records, [] when it has nothing to index,
        or None when embedding failed and the document is dropped."""
        # Ordinals come from the chunk list, never from completion order.
        chunks = self.chunker.chunk_text(document.body)
        if not chunks:
            logger.debug("Skipping %s: no paragraph above the length floor", document.id)
            return []

        async with semaphore:
            try:
                embeddings = await self.embedding_provider.embed_texts(
                    [chunk.text for chunk in chunks]
                )
            except EmbeddingError as exc:
                logger.warning("Dropping %s from this generation: %s", document.id, exc)
                return None

        return [
            ChunkRecord(
                document_id=document.id,
                ordinal=chunk.position,
                text=chunk.text,
                embedding=embedding,
                title=document.title,
                content_type=document.content_type,
            )
            for chunk, embedding in zip(chunks, embeddings)
        ]

    async def _write(self, generation: str, records: list[ChunkRecord]) -> tuple[int, int]:
        written = 0
        dropped = 0
        for batch in batched(records, self.store.max_batch_size):
            try:
                written += await self.store.upsert(generation, batch)
            except (StorageError, InvalidChunkMetadataError) as exc:
                dropped += 1
                logger.error(
                    "Dropping batch of %d chunk(s) for generation %s: %s",
                    len(batch),
                    generation,
                    exc,
                )
        return written, dropped

    async def _discard(self, generation: str) -> None:
        try:
            await self.store.discard(generation)
        except StorageError as exc:
            logger.warning("Could not discard generation %s: %s", generation, exc)

    def _fail(self, reason: str) -> None:
        logger.error("Reindex failed, previous generation stays live: %s", reason)
        self.last_error = reason
        self._state = ReindexState.FAILED

    @staticmethod
    def _unique_documents(documents: list[Document]) -> list[Document]:
        seen: set[str] = set()
        unique: list[Document] = []
        for document in documents:
            if document.id in seen:
                logger.warning("Ignoring duplicate document id %s", document.id)
                continue
            seen.add(document.id)
            unique.append(document)
        return unique
