"""
Result cache for complete search responses.

Entries live in the key/value store with a TTL. The cache is never a source
of truth: any read or write failure is logged and treated as a miss.
"""

from __future__ import annotations

import json
import logging

from ..errors import StorageError
from ..index_config import resolve_cache_ttls
from ..models import ContentType, SearchResult
from ..storage import DuckDBKeyValueStore


logger = logging.getLogger(__name__)

CACHE_KEY_PREFIX = "search-cache:"


def normalize_query(text: str) -> str:
    return text.strip().lower()


class ResultCache:
    """TTL cache keyed by normalized query text and filter."""

    def __init__(
        self,
        kv: DuckDBKeyValueStore,
        *,
        ttl: int | None = None,
        note_ttl: int | None = None,
    ) -> None:
        self.kv = kv
        self.ttl, self.note_ttl = resolve_cache_ttls(ttl, note_ttl)

    @staticmethod
    def make_key(
        query: str,
        *,
        content_type: ContentType | None = None,
        limit: int = 10,
        score_threshold: float | None = None,
    ) -> str:
        threshold = "" if score_threshold is None else f"{score_threshold:g}"
        return (
            f"{CACHE_KEY_PREFIX}{content_type or '*'}:{limit}:{threshold}:"
            f"{normalize_query(query)}"
        )

    def ttl_for(
        self,
        results: list[SearchResult],
        content_type: ContentType | None,
    ) -> int:
        """Notes change often, so any answer that can contain notes expires fast."""
        if content_type == "note":
            return self.note_ttl
        if content_type is None and any(r.content_type == "note" for r in results):
            return self.note_ttl
        return self.ttl

    async def get(self, key: str) -> list[SearchResult] | None:
        try:
            raw = await self.kv.get(key)
        except StorageError as exc:
            logger.warning("Result cache read failed for %r: %s", key, exc)
            return None
        if raw is None:
            return None
        try:
            return [SearchResult.from_dict(item) for item in json.loads(raw)]
        except (ValueError, KeyError, TypeError) as exc:
            logger.warning("Dropping unreadable cache entry %r: %s", key, exc)
            return None

    async def put(self, key: str, results: list[SearchResult], ttl: int) -> None:
        if ttl <= 0:
            return
        payload = json.dumps([result.to_dict() for result in results])
        try:
            await self.kv.put(key, payload, ttl=ttl)
        except StorageError as exc:
            logger.warning("Result cache write failed for %r: %s", key, exc)

    async def clear(self) -> int:
        try:
            removed = await self.kv.delete_prefix(CACHE_KEY_PREFIX)
        except StorageError as exc:
            logger.warning("Result cache clear failed: %s", exc)
            return 0
        logger.debug("Cleared %d cached search responses", removed)
        return removed
