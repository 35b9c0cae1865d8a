"""
Project and technology records from a JSON catalog file.

Structured records have no prose body, so each one is rendered as a short
synthesized sentence for embedding.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal, TypeAlias

from ..errors import IngestionError
from ..models import Document


TechnologyCategory: TypeAlias = Literal["language", "framework", "platform", "database", "tool"]


@dataclass(frozen=True)
class Project:
    slug: str
    title: str
    description: str
    technologies: list[str] = field(default_factory=list)
    url: str | None = None
    github: str | None = None
    featured: bool = False


@dataclass(frozen=True)
class Technology:
    slug: str
    name: str
    category: TechnologyCategory
    description: str
    featured: bool = False


def project_document(project: Project) -> Document:
    body = f"{project.title}: {project.description}"
    if project.technologies:
        body += f" Technologies: {', '.join(project.technologies)}"
    return Document(
        id=f"project:{project.slug}",
        content_type="project",
        title=project.title,
        body=body,
    )


def technology_document(technology: Technology) -> Document:
    return Document(
        id=f"technology:{technology.slug}",
        content_type="technology",
        title=technology.name,
        body=(
            f"{technology.name}: {technology.description} "
            f"Category: {technology.category}"
        ),
    )


class CatalogSource:
    """Serve projects and technologies as indexable documents."""

    def __init__(
        self,
        projects: list[Project] | None = None,
        technologies: list[Technology] | None = None,
    ) -> None:
        self.projects = list(projects or [])
        self.technologies = list(technologies or [])

    @classmethod
    def from_json(cls, path: str) -> CatalogSource:
        """Load ``{"projects": [...], "technologies": [...]}`` from *path*."""
        try:
            raw: dict[str, Any] = json.loads(Path(path).read_text(encoding="utf-8"))
            projects = [Project(**item) for item in raw.get("projects", [])]
            technologies = [Technology(**item) for item in raw.get("technologies", [])]
        except (OSError, ValueError, TypeError) as exc:
            raise IngestionError(f"Cannot load catalog {path}: {exc}") from exc
        return cls(projects=projects, technologies=technologies)

    async def fetch_documents(self) -> list[Document]:
        documents = [project_document(project) for project in self.projects]
        documents.extend(technology_document(tech) for tech in self.technologies)
        return documents


class CatalogFileSource:
    """Re-read the catalog file on every fetch so edits are picked up."""

    def __init__(self, path: str) -> None:
        self.path = path

    async def fetch_documents(self) -> list[Document]:
        return await CatalogSource.from_json(self.path).fetch_documents()
