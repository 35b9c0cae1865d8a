"""
Exception hierarchy for the search and retrieval subsystem.
"""

from __future__ import annotations


class VaultSearchError(Exception):
    """Base class for all vault-search errors."""


class IngestionError(VaultSearchError):
    """Raised when a content source cannot produce its documents."""


class EmbeddingError(VaultSearchError):
    """Raised when the embedding service fails to return vectors."""


class StorageError(VaultSearchError):
    """Raised when the key/value or vector persistence layer fails."""


class IndexStoreError(StorageError):
    """Raised when an index upsert, publish, or query fails."""


class InvalidChunkMetadataError(VaultSearchError, ValueError):
    """Raised when chunk metadata does not match the stored schema."""


class ReindexError(VaultSearchError):
    """Raised when a reindex aborts; the previous generation stays live."""


class SearchUnavailableError(VaultSearchError):
    """Raised when a query cannot be answered (embedding or store failure)."""
