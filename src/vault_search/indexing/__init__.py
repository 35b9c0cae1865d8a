"""Indexing components for vault-search."""

from .chunker import ParagraphChunker, TextChunk, chunk_text
from .pipeline import IndexingPipeline, IndexingResult, ReindexState

__all__ = [
    "ParagraphChunker",
    "TextChunk",
    "chunk_text",
    "IndexingPipeline",
    "IndexingResult",
    "ReindexState",
]
