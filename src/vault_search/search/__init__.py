"""Search helpers for the published index."""

from .cache import ResultCache, normalize_query
from .query import QueryEngine
from .ranker import collapse_hits, rank_hits

__all__ = [
    "ResultCache",
    "normalize_query",
    "QueryEngine",
    "collapse_hits",
    "rank_hits",
]
