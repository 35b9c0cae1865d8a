"""
vault-search - semantic search over a personal knowledge vault.

Notes from a GitHub-hosted vault plus a catalog of projects and technologies
are chunked by paragraph, embedded with Google GenAI, and stored in DuckDB.
Queries are answered by cosine similarity, one result per document.

Example usage:
    >>> from vault_search import build_runtime
    >>> runtime = build_runtime(db_path="index.duckdb")
    >>> await runtime.pipeline.reindex_sources(runtime.sources)
    >>> results = await runtime.query_engine.search("kubernetes", limit=5)
"""

from .embeddings import EmbeddingProvider
from .errors import (
    EmbeddingError,
    IndexStoreError,
    IngestionError,
    InvalidChunkMetadataError,
    ReindexError,
    SearchUnavailableError,
    StorageError,
    VaultSearchError,
)
from .indexing import IndexingPipeline, IndexingResult, ParagraphChunker, chunk_text
from .models import ContentType, Document, SearchResult
from .runtime import SearchRuntime, build_runtime
from .search import QueryEngine, ResultCache
from .similarity import cosine_similarity
from .storage import BlobIndexStore, DuckDBKeyValueStore, VectorIndexStore

__all__ = [
    # Models
    "ContentType",
    "Document",
    "SearchResult",
    # Errors
    "VaultSearchError",
    "IngestionError",
    "EmbeddingError",
    "StorageError",
    "IndexStoreError",
    "InvalidChunkMetadataError",
    "ReindexError",
    "SearchUnavailableError",
    # Indexing
    "ParagraphChunker",
    "chunk_text",
    "IndexingPipeline",
    "IndexingResult",
    # Search
    "EmbeddingProvider",
    "cosine_similarity",
    "QueryEngine",
    "ResultCache",
    # Storage
    "BlobIndexStore",
    "DuckDBKeyValueStore",
    "VectorIndexStore",
    # Wiring
    "SearchRuntime",
    "build_runtime",
]
