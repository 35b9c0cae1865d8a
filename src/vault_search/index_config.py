"""
Configuration helpers for index storage, backends, and caching.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Literal, TypeAlias


Backend: TypeAlias = Literal["blob", "vector"]

DEFAULT_DB_PATH = "~/.vault_search/index.duckdb"
ENV_DB_PATH = "VAULT_SEARCH_DB_PATH"
ENV_BACKEND = "VAULT_SEARCH_BACKEND"
ENV_CACHE_TTL = "VAULT_SEARCH_CACHE_TTL"
ENV_NOTE_CACHE_TTL = "VAULT_SEARCH_NOTE_CACHE_TTL"
ENV_API_TOKEN = "VAULT_SEARCH_API_TOKEN"
ENV_CATALOG_PATH = "VAULT_SEARCH_CATALOG_PATH"

DEFAULT_BACKEND: Backend = "blob"
# Projects and technologies change rarely; vault notes change often.
DEFAULT_CACHE_TTL = 6 * 60 * 60
DEFAULT_NOTE_CACHE_TTL = 5 * 60


def resolve_db_path(override_path: str | None = None) -> str:
    """
    Resolve the DuckDB path from CLI override, env var, or default.

    Precedence:
    1) explicit override_path
    2) VAULT_SEARCH_DB_PATH
    3) default path
    """
    raw_path = override_path or os.getenv(ENV_DB_PATH) or DEFAULT_DB_PATH
    resolved = Path(raw_path).expanduser().resolve()
    resolved.parent.mkdir(parents=True, exist_ok=True)
    return str(resolved)


def resolve_backend(override: str | None = None) -> Backend:
    """Resolve the index backend name (``blob`` or ``vector``)."""
    raw = (override or os.getenv(ENV_BACKEND) or DEFAULT_BACKEND).strip().lower()
    if raw not in ("blob", "vector"):
        raise ValueError(f"Unknown index backend {raw!r}. Use 'blob' or 'vector'.")
    return raw  # type: ignore[return-value]


def resolve_cache_ttls(
    ttl: int | None = None,
    note_ttl: int | None = None,
) -> tuple[int, int]:
    """Return ``(ttl, note_ttl)`` in seconds, from arguments or environment."""
    resolved_ttl = ttl if ttl is not None else int(
        os.getenv(ENV_CACHE_TTL, str(DEFAULT_CACHE_TTL))
    )
    resolved_note_ttl = note_ttl if note_ttl is not None else int(
        os.getenv(ENV_NOTE_CACHE_TTL, str(DEFAULT_NOTE_CACHE_TTL))
    )
    if resolved_ttl < 0 or resolved_note_ttl < 0:
        raise ValueError("Cache TTLs must be >= 0")
    return resolved_ttl, resolved_note_ttl


def resolve_api_token(override: str | None = None) -> str | None:
    return override or os.getenv(ENV_API_TOKEN) or None


def resolve_catalog_path(override: str | None = None) -> str | None:
    raw = override or os.getenv(ENV_CATALOG_PATH)
    if not raw:
        return None
    return str(Path(raw).expanduser().resolve())
