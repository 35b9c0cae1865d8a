"""
Storage interfaces and data models for index persistence.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from ..models import ChunkMetadata, ContentType, make_snippet


@dataclass(frozen=True)
class ChunkRecord:
    """An embedded chunk ready to be written into an index generation."""

    document_id: str
    ordinal: int
    text: str
    embedding: list[float]
    title: str
    content_type: ContentType

    @property
    def id(self) -> str:
        return make_chunk_id(self.document_id, self.ordinal)

    @property
    def snippet(self) -> str:
        return make_snippet(self.text)

    def metadata(self) -> ChunkMetadata:
        """Return validated metadata; raises InvalidChunkMetadataError."""
        return ChunkMetadata.validated(
            document_id=self.document_id,
            ordinal=self.ordinal,
            title=self.title,
            content_type=self.content_type,
            snippet=self.snippet,
        )


@dataclass(frozen=True)
class IndexHit:
    """A scored chunk returned by an index store query."""

    chunk_id: str
    document_id: str
    ordinal: int
    title: str
    content_type: ContentType
    snippet: str
    score: float


@dataclass(frozen=True)
class GenerationInfo:
    """Summary of one published index generation."""

    generation: str
    chunk_count: int
    document_count: int
    created_at: str


def make_chunk_id(document_id: str, ordinal: int) -> str:
    return f"{document_id}#{ordinal}"


class IndexStore(Protocol):
    """Protocol for generation-based vector persistence and similarity search.

    Writers stage a whole generation with ``upsert`` and make it visible with
    ``publish``. Readers only ever see the last published generation.
    """

    #: Whether ``query`` applies ``top_k`` and ``content_type`` natively.
    supports_filter_pushdown: bool
    #: Maximum records per ``upsert`` call, or None when unbounded.
    max_batch_size: int | None

    async def upsert(self, generation: str, records: list[ChunkRecord]) -> int:
        """Write records into an unpublished generation. Return count written."""

    async def publish(self, generation: str) -> GenerationInfo:
        """Atomically make *generation* the one served to readers."""

    async def discard(self, generation: str) -> None:
        """Drop an unpublished generation."""

    async def query(
        self,
        vector: list[float],
        *,
        top_k: int | None = None,
        content_type: ContentType | None = None,
    ) -> list[IndexHit]:
        """Return hits from the published generation, best score first."""

    async def current_generation(self) -> GenerationInfo | None:
        """Return the published generation, if any."""

    async def count_chunks(self) -> int:
        """Count chunks in the published generation."""
