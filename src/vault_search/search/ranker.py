"""
Ranking helpers for collapsing chunk hits into document results.
"""

from __future__ import annotations

from ..models import ContentType, SearchResult
from ..storage import IndexHit


def rank_hits(hits: list[IndexHit]) -> list[IndexHit]:
    """Sort hits best-first with a deterministic tie-break."""
    return sorted(hits, key=lambda hit: (-hit.score, hit.document_id, hit.ordinal))


def collapse_hits(
    hits: list[IndexHit],
    *,
    limit: int,
    content_type: ContentType | None = None,
    score_threshold: float | None = None,
) -> list[SearchResult]:
    """Keep the best-scoring chunk per document and apply limit.

    The threshold is checked against each document's best chunk, after
    dedup and before truncation, so weak documents never take a slot.
    """
    seen: set[str] = set()
    results: list[SearchResult] = []
    for hit in rank_hits(hits):
        if content_type is not None and hit.content_type != content_type:
            continue
        if hit.document_id in seen:
            continue
        seen.add(hit.document_id)
        if score_threshold is not None and hit.score < score_threshold:
            continue
        results.append(
            SearchResult(
                document_id=hit.document_id,
                title=hit.title,
                snippet=hit.snippet,
                score=hit.score,
                content_type=hit.content_type,
            )
        )
        if len(results) >= max(limit, 1):
            break
    return results
