"""
Wiring of stores, embedder, cache, query engine, and reindex pipeline.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from functools import cached_property

import duckdb

from .embeddings import EmbeddingProvider
from .index_config import resolve_backend, resolve_catalog_path, resolve_db_path
from .indexing import IndexingPipeline
from .search import QueryEngine, ResultCache
from .sources import CatalogFileSource, DocumentSource, GitHubVaultSource
from .storage import (
    BlobIndexStore,
    DuckDBKeyValueStore,
    IndexStore,
    VectorIndexStore,
    open_connection,
)


@dataclass
class SearchRuntime:
    """Everything the API and CLI need, sharing one DuckDB connection.

    The embedder is only created when searching or reindexing asks for it, so
    read-only commands work without a Google API key.
    """

    store: IndexStore
    cache: ResultCache
    sources: list[DocumentSource] = field(default_factory=list)
    connection: duckdb.DuckDBPyConnection | None = None
    embedding_provider: EmbeddingProvider | None = None

    @cached_property
    def embedder(self) -> EmbeddingProvider:
        return self.embedding_provider or EmbeddingProvider()

    @cached_property
    def query_engine(self) -> QueryEngine:
        return QueryEngine(self.store, self.embedder, cache=self.cache)

    @cached_property
    def pipeline(self) -> IndexingPipeline:
        return IndexingPipeline(self.store, self.embedder, cache=self.cache)

    def close(self) -> None:
        if self.connection is not None:
            self.connection.close()
            self.connection = None


def build_sources(
    *,
    catalog_path: str | None = None,
    vault_repo: str | None = None,
    public_only: bool = False,
) -> list[DocumentSource]:
    """Vault notes when a repo is configured, plus the catalog when one is set."""
    sources: list[DocumentSource] = []
    if vault_repo or os.getenv("GITHUB_REPO"):
        sources.append(GitHubVaultSource(repo=vault_repo, public_only=public_only))
    resolved_catalog = resolve_catalog_path(catalog_path)
    if resolved_catalog is not None:
        sources.append(CatalogFileSource(resolved_catalog))
    return sources


def build_runtime(
    *,
    db_path: str | None = None,
    backend: str | None = None,
    embedding_provider: EmbeddingProvider | None = None,
    sources: list[DocumentSource] | None = None,
    catalog_path: str | None = None,
    vault_repo: str | None = None,
    public_only: bool = False,
) -> SearchRuntime:
    connection = open_connection(resolve_db_path(db_path))
    kv = DuckDBKeyValueStore(connection=connection)

    store: IndexStore
    if resolve_backend(backend) == "vector":
        store = VectorIndexStore(connection=connection)
    else:
        store = BlobIndexStore(kv)

    cache = ResultCache(kv)
    if sources is None:
        sources = build_sources(
            catalog_path=catalog_path,
            vault_repo=vault_repo,
            public_only=public_only,
        )
    return SearchRuntime(
        store=store,
        cache=cache,
        sources=sources,
        connection=connection,
        embedding_provider=embedding_provider,
    )
