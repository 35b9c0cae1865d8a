"""Content sources that feed the reindex pipeline."""

from .base import DocumentSource, collect_documents
from .catalog import (
    CatalogFileSource,
    CatalogSource,
    Project,
    Technology,
    project_document,
    technology_document,
)
from .github import GitHubVaultSource, parse_frontmatter

__all__ = [
    "DocumentSource",
    "collect_documents",
    "CatalogFileSource",
    "CatalogSource",
    "Project",
    "Technology",
    "project_document",
    "technology_document",
    "GitHubVaultSource",
    "parse_frontmatter",
]
