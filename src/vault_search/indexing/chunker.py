"""
Chunking utilities for indexing document content.
"""

from __future__ import annotations

import re
from dataclasses import dataclass


_PARAGRAPH_BREAK = re.compile(r"\n\s*\n")
_PARAGRAPH_JOINER = "\n\n"

DEFAULT_MAX_LEN = 512
MIN_PARAGRAPH_LENGTH = 20


@dataclass(frozen=True)
class TextChunk:
    """A content chunk and its 0-based ordinal within the document."""

    text: str
    position: int


class ParagraphChunker:
    """
    Paragraph-aligned greedy chunker.

    Paragraphs are never split. A paragraph longer than ``max_len`` becomes
    its own oversized chunk.
    """

    def __init__(
        self,
        max_len: int = DEFAULT_MAX_LEN,
        min_paragraph_length: int = MIN_PARAGRAPH_LENGTH,
    ) -> None:
        if max_len <= 0:
            raise ValueError("max_len must be > 0")
        if min_paragraph_length < 0:
            raise ValueError("min_paragraph_length must be >= 0")

        self.max_len = max_len
        self.min_paragraph_length = min_paragraph_length

    def split_paragraphs(self, text: str) -> list[str]:
        """Split on blank lines and drop paragraphs below the length floor."""
        paragraphs: list[str] = []
        for raw in _PARAGRAPH_BREAK.split(text):
            paragraph = raw.strip()
            if len(paragraph) >= self.min_paragraph_length and paragraph:
                paragraphs.append(paragraph)
        return paragraphs

    def chunk_text(self, text: str) -> list[TextChunk]:
        """
        Greedily pack paragraphs into chunks of roughly ``max_len`` characters.
        """
        chunks: list[TextChunk] = []
        buffer: list[str] = []
        buffer_len = 0

        for paragraph in self.split_paragraphs(text):
            appended_len = buffer_len + len(_PARAGRAPH_JOINER) + len(paragraph)
            if buffer and appended_len > self.max_len:
                chunks.append(
                    TextChunk(text=_PARAGRAPH_JOINER.join(buffer), position=len(chunks))
                )
                buffer = []
                buffer_len = 0

            if buffer:
                buffer_len += len(_PARAGRAPH_JOINER)
            buffer.append(paragraph)
            buffer_len += len(paragraph)

        if buffer:
            chunks.append(
                TextChunk(text=_PARAGRAPH_JOINER.join(buffer), position=len(chunks))
            )
        return chunks


def chunk_text(body: str, max_len: int = DEFAULT_MAX_LEN) -> list[str]:
    """Chunk *body* and return only the chunk texts, in order."""
    return [chunk.text for chunk in ParagraphChunker(max_len=max_len).chunk_text(body)]
