from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import pytest

from vault_search.errors import EmbeddingError
from vault_search.models import Document
from vault_search.storage import (
    BlobIndexStore,
    DuckDBKeyValueStore,
    VectorIndexStore,
    open_connection,
)


# ---------------------------------------------------------------------------
# Deterministic bag-of-words embedder
# ---------------------------------------------------------------------------

VOCABULARY = (
    "kubernetes",
    "networking",
    "react",
    "python",
    "rust",
    "duckdb",
    "search",
    "frontend",
)
OTHER_WEIGHT = 0.1
FAIL_MARKER = "embedfail"

_WORD_RE = re.compile(r"[a-z0-9]+")


def fake_vector(text: str) -> list[float]:
    """One dimension per vocabulary word plus a lightly weighted catch-all."""
    vector = [0.0] * (len(VOCABULARY) + 1)
    for word in _WORD_RE.findall(text.lower()):
        if word in VOCABULARY:
            vector[VOCABULARY.index(word)] += 1.0
        else:
            vector[-1] += OTHER_WEIGHT
    return vector


class FakeEmbeddingProvider:
    """Stands in for EmbeddingProvider; counts calls and fails on a marker word."""

    def __init__(self) -> None:
        self.dim = len(VOCABULARY) + 1
        self.document_calls: list[list[str]] = []
        self.query_calls: list[str] = []
        self.fail_queries = False

    @property
    def call_count(self) -> int:
        return len(self.document_calls) + len(self.query_calls)

    async def embed_texts(
        self,
        texts: list[str],
        *,
        task_type: str = "RETRIEVAL_DOCUMENT",
    ) -> list[list[float]]:
        self.document_calls.append(list(texts))
        if any(FAIL_MARKER in text.lower() for text in texts):
            raise EmbeddingError("embedding service rejected the batch")
        return [fake_vector(text) for text in texts]

    async def embed_query(self, query: str) -> list[float]:
        self.query_calls.append(query)
        if self.fail_queries:
            raise EmbeddingError("embedding service unavailable")
        return fake_vector(query)


# ---------------------------------------------------------------------------
# Fake Google GenAI client (async surface only)
# ---------------------------------------------------------------------------


@dataclass
class FakeEmbedding:
    values: list[float]


@dataclass
class FakeEmbedResult:
    embeddings: list[FakeEmbedding]


class FakeAsyncModels:
    def __init__(self) -> None:
        self.calls: list[dict[str, Any]] = []
        self.error: Exception | None = None
        self.drop_last = False

    async def embed_content(
        self, *, model: str, contents: list[str], config: dict
    ) -> FakeEmbedResult:
        self.calls.append({"model": model, "contents": contents, "config": config})
        if self.error is not None:
            raise self.error
        dim = config.get("output_dimensionality", 768)
        embeddings = [
            FakeEmbedding(values=[float(i + 1)] * dim) for i in range(len(contents))
        ]
        if self.drop_last:
            embeddings = embeddings[:-1]
        return FakeEmbedResult(embeddings=embeddings)


class FakeAio:
    def __init__(self) -> None:
        self.models = FakeAsyncModels()


class FakeGenAIClient:
    def __init__(self) -> None:
        self.aio = FakeAio()


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


def make_document(
    document_id: str,
    title: str,
    body: str,
    content_type: str = "note",
) -> Document:
    return Document(id=document_id, content_type=content_type, title=title, body=body)


@pytest.fixture()
def embedder() -> FakeEmbeddingProvider:
    return FakeEmbeddingProvider()


@pytest.fixture()
def genai_client() -> FakeGenAIClient:
    return FakeGenAIClient()


@pytest.fixture()
def connection(tmp_path: Path):
    conn = open_connection(str(tmp_path / "index.duckdb"))
    yield conn
    conn.close()


@pytest.fixture()
def kv(connection) -> DuckDBKeyValueStore:
    return DuckDBKeyValueStore(connection=connection)


@pytest.fixture()
def blob_store(kv) -> BlobIndexStore:
    return BlobIndexStore(kv)


@pytest.fixture()
def vector_store(connection) -> VectorIndexStore:
    return VectorIndexStore(connection=connection)


@pytest.fixture(params=["blob", "vector"])
def index_store(request, kv, connection):
    """Run a test once against each index backend."""
    if request.param == "blob":
        return BlobIndexStore(kv)
    return VectorIndexStore(connection=connection)
