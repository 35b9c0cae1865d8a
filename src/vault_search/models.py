from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Literal, TypeAlias, get_args

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import InvalidChunkMetadataError

ContentType: TypeAlias = Literal["note", "project", "technology"]

CONTENT_TYPES: tuple[str, ...] = get_args(ContentType)
SNIPPET_LENGTH = 200


def make_snippet(text: str) -> str:
    """Display snippet for a chunk: its first SNIPPET_LENGTH characters."""
    return text[:SNIPPET_LENGTH]


def parse_content_type(value: str | None) -> ContentType | None:
    """Validate an optional content type filter coming from a caller."""
    if value is None or not value.strip():
        return None
    normalized = value.strip().lower()
    if normalized not in CONTENT_TYPES:
        allowed = ", ".join(CONTENT_TYPES)
        raise ValueError(f"Unknown content type {value!r}. Allowed types: {allowed}")
    return normalized  # type: ignore[return-value]


@dataclass(frozen=True)
class Document:
    """A unit of indexable content, materialized fresh on every reindex."""

    id: str
    content_type: ContentType
    title: str
    body: str


@dataclass(frozen=True)
class SearchResult:
    """One ranked, document-level search hit."""

    document_id: str
    title: str
    snippet: str
    score: float
    content_type: ContentType

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SearchResult:
        return cls(
            document_id=str(data["document_id"]),
            title=str(data["title"]),
            snippet=str(data["snippet"]),
            score=float(data["score"]),
            content_type=data["content_type"],
        )


class ChunkMetadata(BaseModel):
    """Schema of the metadata attached to every stored vector."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    document_id: str = Field(min_length=1)
    ordinal: int = Field(ge=0)
    title: str
    content_type: ContentType
    snippet: str = Field(min_length=1, max_length=SNIPPET_LENGTH)

    @classmethod
    def validated(cls, **values: Any) -> ChunkMetadata:
        """Build metadata, translating pydantic errors into the package error."""
        try:
            return cls(**values)
        except ValidationError as exc:
            raise InvalidChunkMetadataError(
                f"Invalid metadata for chunk {values.get('document_id')!r}"
                f"#{values.get('ordinal')!r}: {exc}"
            ) from exc
