"""
Content source interface and corpus collection.
"""

from __future__ import annotations

import logging
from typing import Protocol, Sequence

from ..models import Document


logger = logging.getLogger(__name__)


class DocumentSource(Protocol):
    """Anything that can materialize a list of documents for indexing."""

    async def fetch_documents(self) -> list[Document]:
        """Return every document; raise IngestionError when unreachable."""


async def collect_documents(sources: Sequence[DocumentSource]) -> list[Document]:
    """Fetch from every source in order. The first IngestionError aborts."""
    documents: list[Document] = []
    for source in sources:
        fetched = await source.fetch_documents()
        logger.info("Collected %d document(s) from %s", len(fetched), type(source).__name__)
        documents.extend(fetched)
    return documents
