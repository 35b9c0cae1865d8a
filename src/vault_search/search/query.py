"""
Query engine: embed, search the index store, dedup per document, rank.
"""

from __future__ import annotations

import logging

from ..embeddings import EmbeddingProvider
from ..errors import EmbeddingError, SearchUnavailableError, StorageError
from ..models import ContentType, SearchResult
from ..storage import IndexStore
from .cache import ResultCache, normalize_query
from .ranker import collapse_hits


logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 10
DEFAULT_OVERSAMPLE = 4


class QueryEngine:
    """Semantic search over the published index generation."""

    def __init__(
        self,
        store: IndexStore,
        embedding_provider: EmbeddingProvider,
        *,
        cache: ResultCache | None = None,
        oversample: int = DEFAULT_OVERSAMPLE,
    ) -> None:
        if oversample < 1:
            raise ValueError("oversample must be >= 1")
        self.store = store
        self.embedding_provider = embedding_provider
        self.cache = cache
        self.oversample = oversample

    async def search(
        self,
        query: str,
        *,
        limit: int = DEFAULT_LIMIT,
        content_type: ContentType | None = None,
        score_threshold: float | None = None,
    ) -> list[SearchResult]:
        """Return at most *limit* results, one per document, best first.

        Raises SearchUnavailableError when the embedding service or the index
        store fails; an empty list always means "no matches".
        """
        if not normalize_query(query):
            return []
        normalized_limit = max(limit, 1)

        cache_key: str | None = None
        if self.cache is not None:
            cache_key = self.cache.make_key(
                query,
                content_type=content_type,
                limit=normalized_limit,
                score_threshold=score_threshold,
            )
            cached = await self.cache.get(cache_key)
            if cached is not None:
                logger.debug("Result cache hit for %r", cache_key)
                return cached

        results = await self._search(
            query,
            limit=normalized_limit,
            content_type=content_type,
            score_threshold=score_threshold,
        )

        if self.cache is not None and cache_key is not None:
            await self.cache.put(
                cache_key, results, self.cache.ttl_for(results, content_type)
            )
        return results

    async def _search(
        self,
        query: str,
        *,
        limit: int,
        content_type: ContentType | None,
        score_threshold: float | None,
    ) -> list[SearchResult]:
        try:
            query_embedding = await self.embedding_provider.embed_query(query)
        except EmbeddingError as exc:
            logger.error("Query embedding failed: %s", exc)
            raise SearchUnavailableError("search unavailable: embedding failed") from exc

        if self.store.supports_filter_pushdown:
            # Several chunks of one document can fill the top-K, so oversample.
            top_k: int | None = limit * self.oversample
            store_filter = content_type
        else:
            top_k = None
            store_filter = None

        try:
            hits = await self.store.query(
                query_embedding,
                top_k=top_k,
                content_type=store_filter,
            )
        except StorageError as exc:
            logger.error("Index query failed: %s", exc)
            raise SearchUnavailableError("search unavailable: index query failed") from exc

        return collapse_hits(
            hits,
            limit=limit,
            content_type=content_type,
            score_threshold=score_threshold,
        )
