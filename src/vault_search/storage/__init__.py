"""Storage backends for the search index."""

from .base import ChunkRecord, GenerationInfo, IndexHit, IndexStore, make_chunk_id
from .blob import BlobIndexStore
from .kv import DuckDBKeyValueStore, open_connection
from .vector import VectorIndexStore

__all__ = [
    "ChunkRecord",
    "GenerationInfo",
    "IndexHit",
    "IndexStore",
    "make_chunk_id",
    "BlobIndexStore",
    "DuckDBKeyValueStore",
    "open_connection",
    "VectorIndexStore",
]
