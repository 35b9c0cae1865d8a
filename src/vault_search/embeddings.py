"""
Embedding provider for vector-based semantic search.

Wraps the Google GenAI async embedding API for batch and single-query
embedding with configurable model, dimensions, and batch size.
"""

from __future__ import annotations

import logging
import os
from typing import Any

import httpx
from google.genai import Client as GenAIClient
from google.genai import errors as genai_errors

from .errors import EmbeddingError


logger = logging.getLogger(__name__)

_DEFAULT_MODEL = "gemini-embedding-001"
_DEFAULT_DIM = 768
_DEFAULT_BATCH_SIZE = 50


class EmbeddingProvider:
    """Generate text embeddings via Google GenAI."""

    def __init__(
        self,
        *,
        api_key: str | None = None,
        model: str | None = None,
        dim: int | None = None,
        batch_size: int | None = None,
        client: Any | None = None,
    ) -> None:
        self.model = model or os.getenv("VAULT_SEARCH_EMBEDDING_MODEL", _DEFAULT_MODEL)
        self.dim = dim or int(os.getenv("VAULT_SEARCH_EMBEDDING_DIM", str(_DEFAULT_DIM)))
        self.batch_size = batch_size or int(
            os.getenv("VAULT_SEARCH_EMBEDDING_BATCH_SIZE", str(_DEFAULT_BATCH_SIZE))
        )

        if client is not None:
            self._client = client
        else:
            resolved_key = api_key or os.getenv("GOOGLE_API_KEY")
            if resolved_key is None:
                raise ValueError(
                    "GOOGLE_API_KEY not found. "
                    "Provide api_key or set the environment variable."
                )
            self._client = GenAIClient(api_key=resolved_key)

    async def embed_texts(
        self,
        texts: list[str],
        *,
        task_type: str = "RETRIEVAL_DOCUMENT",
    ) -> list[list[float]]:
        """Embed a list of texts in batches.

        Returns a list of embedding vectors in the same order as *texts*.
        """
        all_embeddings: list[list[float]] = []
        for start in range(0, len(texts), self.batch_size):
            batch = texts[start : start + self.batch_size]
            all_embeddings.extend(await self._embed_batch(batch, task_type=task_type))
        return all_embeddings

    async def embed_query(self, query: str) -> list[float]:
        """Embed a single query text for retrieval."""
        if not query.strip():
            raise ValueError("Cannot embed an empty query")
        embeddings = await self._embed_batch([query], task_type="RETRIEVAL_QUERY")
        return embeddings[0]

    async def _embed_batch(self, batch: list[str], *, task_type: str) -> list[list[float]]:
        try:
            result = await self._client.aio.models.embed_content(
                model=self.model,
                contents=batch,
                config={
                    "task_type": task_type,
                    "output_dimensionality": self.dim,
                },
            )
        except (genai_errors.APIError, httpx.HTTPError) as exc:
            raise EmbeddingError(f"Embedding request failed: {exc}") from exc

        embeddings = [list(emb.values) for emb in (result.embeddings or [])]
        if len(embeddings) != len(batch):
            raise EmbeddingError(
                f"Embedding service returned {len(embeddings)} vectors "
                f"for {len(batch)} texts"
            )
        logger.debug("Embedded %d text(s) with %s", len(batch), self.model)
        return embeddings
