"""
DuckDB-backed key/value store with optional per-entry expiry.
"""

from __future__ import annotations

import asyncio
import time
from pathlib import Path
from typing import Any, Callable, TypeVar

import duckdb

from ..errors import StorageError


T = TypeVar("T")


def open_connection(db_path: str) -> duckdb.DuckDBPyConnection:
    """Open a read-write DuckDB connection, creating parent folders."""
    if db_path != ":memory:":
        db_path = str(Path(db_path).expanduser().resolve())
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    return duckdb.connect(db_path)


class DuckDBBase:
    """Connection ownership and thread offloading shared by DuckDB stores."""

    def __init__(
        self,
        db_path: str | None = None,
        *,
        connection: duckdb.DuckDBPyConnection | None = None,
    ) -> None:
        if connection is None and db_path is None:
            raise ValueError("Provide either db_path or connection")
        self._owns_connection = connection is None
        self._conn = connection if connection is not None else open_connection(str(db_path))

    def close(self) -> None:
        """Close the underlying DuckDB connection if this store opened it."""
        if self._owns_connection:
            self._conn.close()

    async def _run(self, func: Callable[..., T], *args: Any) -> T:
        # Each call gets its own cursor so worker threads never share one.
        def _call() -> T:
            with self._conn.cursor() as cursor:
                try:
                    return func(cursor, *args)
                except duckdb.Error as exc:
                    raise StorageError(f"DuckDB operation failed: {exc}") from exc

        return await asyncio.to_thread(_call)


class DuckDBKeyValueStore(DuckDBBase):
    """String key/value persistence in a single DuckDB table."""

    def __init__(
        self,
        db_path: str | None = None,
        *,
        connection: duckdb.DuckDBPyConnection | None = None,
        initialize: bool = True,
    ) -> None:
        super().__init__(db_path, connection=connection)
        if initialize:
            self.initialize()

    def initialize(self) -> None:
        self._conn.execute(
            """
            CREATE TABLE IF NOT EXISTS kv_entries (
                key VARCHAR PRIMARY KEY,
                value VARCHAR NOT NULL,
                expires_at DOUBLE,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            );
            """
        )

    async def get(self, key: str) -> str | None:
        """Return the value for *key*, or None when missing or expired."""
        return await self._run(self._get, key, time.time())

    async def put(self, key: str, value: str, *, ttl: float | None = None) -> None:
        """Insert or overwrite *key*. ``ttl`` is in seconds; None never expires."""
        expires_at = time.time() + ttl if ttl is not None else None
        await self._run(self._put, key, value, expires_at)

    async def delete(self, key: str) -> None:
        await self._run(self._delete, key)

    async def delete_prefix(self, prefix: str) -> int:
        """Delete every key starting with *prefix*. Return count deleted."""
        return await self._run(self._delete_prefix, prefix)

    async def list_keys(self, prefix: str = "") -> list[str]:
        return await self._run(self._list_keys, prefix, time.time())

    @staticmethod
    def _get(cursor: duckdb.DuckDBPyConnection, key: str, now: float) -> str | None:
        row = cursor.execute(
            "SELECT value, expires_at FROM kv_entries WHERE key = ?",
            [key],
        ).fetchone()
        if row is None:
            return None
        value, expires_at = row
        if expires_at is not None and float(expires_at) <= now:
            cursor.execute("DELETE FROM kv_entries WHERE key = ?", [key])
            return None
        return str(value)

    @staticmethod
    def _put(
        cursor: duckdb.DuckDBPyConnection,
        key: str,
        value: str,
        expires_at: float | None,
    ) -> None:
        cursor.execute(
            """
            INSERT INTO kv_entries (key, value, expires_at)
            VALUES (?, ?, ?)
            ON CONFLICT(key) DO UPDATE SET
                value = excluded.value,
                expires_at = excluded.expires_at,
                updated_at = now()
            """,
            [key, value, expires_at],
        )

    @staticmethod
    def _delete(cursor: duckdb.DuckDBPyConnection, key: str) -> None:
        cursor.execute("DELETE FROM kv_entries WHERE key = ?", [key])

    @staticmethod
    def _delete_prefix(cursor: duckdb.DuckDBPyConnection, prefix: str) -> int:
        row = cursor.execute(
            "SELECT COUNT(*) FROM kv_entries WHERE starts_with(key, ?)",
            [prefix],
        ).fetchone()
        cursor.execute("DELETE FROM kv_entries WHERE starts_with(key, ?)", [prefix])
        return int(row[0]) if row else 0

    @staticmethod
    def _list_keys(
        cursor: duckdb.DuckDBPyConnection,
        prefix: str,
        now: float,
    ) -> list[str]:
        rows = cursor.execute(
            """
            SELECT key FROM kv_entries
            WHERE starts_with(key, ?)
              AND (expires_at IS NULL OR expires_at > ?)
            ORDER BY key
            """,
            [prefix, now],
        ).fetchall()
        return [str(row[0]) for row in rows]
