"""Tests for the vault and catalog content sources."""

from __future__ import annotations

import base64
import json
from pathlib import Path

import httpx
import pytest

from vault_search.errors import IngestionError
from vault_search.sources import (
    CatalogFileSource,
    CatalogSource,
    GitHubVaultSource,
    Project,
    Technology,
    parse_frontmatter,
    project_document,
    technology_document,
)
from vault_search.sources.github import is_indexable_note


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------


def test_technology_document_synthesizes_sentence() -> None:
    doc = technology_document(
        Technology(
            slug="python",
            name="Python",
            category="language",
            description="General purpose language",
        )
    )

    assert doc.id == "technology:python"
    assert doc.content_type == "technology"
    assert doc.title == "Python"
    assert doc.body == "Python: General purpose language Category: language"


def test_project_document_lists_technologies() -> None:
    doc = project_document(
        Project(
            slug="vault-site",
            title="Vault Site",
            description="Personal site backed by a notes vault.",
            technologies=["TypeScript", "Cloudflare"],
        )
    )

    assert doc.id == "project:vault-site"
    assert doc.content_type == "project"
    assert doc.body == (
        "Vault Site: Personal site backed by a notes vault. "
        "Technologies: TypeScript, Cloudflare"
    )


@pytest.mark.asyncio
async def test_catalog_file_source_reads_json(tmp_path: Path) -> None:
    catalog = tmp_path / "catalog.json"
    catalog.write_text(
        json.dumps(
            {
                "projects": [
                    {"slug": "p1", "title": "P1", "description": "First project here."}
                ],
                "technologies": [
                    {
                        "slug": "duckdb",
                        "name": "DuckDB",
                        "category": "database",
                        "description": "Embedded analytics database",
                    }
                ],
            }
        )
    )

    documents = await CatalogFileSource(str(catalog)).fetch_documents()

    assert [doc.id for doc in documents] == ["project:p1", "technology:duckdb"]


@pytest.mark.asyncio
async def test_catalog_with_unknown_fields_is_an_ingestion_error(tmp_path: Path) -> None:
    catalog = tmp_path / "catalog.json"
    catalog.write_text(json.dumps({"projects": [{"slug": "p1", "colour": "red"}]}))

    with pytest.raises(IngestionError):
        await CatalogFileSource(str(catalog)).fetch_documents()


def test_missing_catalog_file_is_an_ingestion_error(tmp_path: Path) -> None:
    with pytest.raises(IngestionError, match="Cannot load catalog"):
        CatalogSource.from_json(str(tmp_path / "missing.json"))


# ---------------------------------------------------------------------------
# Frontmatter and path filtering
# ---------------------------------------------------------------------------


def test_parse_frontmatter_extracts_fields_and_body() -> None:
    content = '---\ntitle: "Cluster Ops"\ntags: k8s\nbroken line\n---\nBody text here.'

    frontmatter, body = parse_frontmatter(content)

    assert frontmatter == {"title": "Cluster Ops", "tags": "k8s"}
    assert body == "Body text here."


def test_parse_frontmatter_without_block_returns_content() -> None:
    assert parse_frontmatter("No frontmatter.") == ({}, "No frontmatter.")


@pytest.mark.parametrize(
    ("path", "public_only", "expected"),
    [
        ("Notes/k8s.md", False, True),
        ("Templates/daily.md", False, False),
        ("Archive/old.md", False, False),
        (".obsidian/config.md", False, False),
        ("tools/node_modules/readme.md", False, False),
        ("CLAUDE.md", False, False),
        ("Notes/image.png", False, False),
        ("Public/post.md", True, True),
        ("Notes/k8s.md", True, False),
    ],
)
def test_is_indexable_note(path: str, public_only: bool, expected: bool) -> None:
    assert is_indexable_note(path, public_only=public_only) is expected


# ---------------------------------------------------------------------------
# GitHub vault source
# ---------------------------------------------------------------------------


def _encoded(text: str) -> str:
    return base64.b64encode(text.encode("utf-8")).decode("ascii")


NOTES = {
    "Notes/k8s.md": "---\ntitle: Kubernetes Notes\n---\nKubernetes clusters schedule pods.",
    "Notes/react.md": "React components render the frontend.",
    "Templates/daily.md": "Template body.",
}


def _vault_handler(request: httpx.Request) -> httpx.Response:
    path = request.url.path
    if path.endswith("/git/trees/main"):
        assert request.url.params["recursive"] == "1"
        tree = [{"path": p, "type": "blob"} for p in NOTES]
        tree.append({"path": "Notes", "type": "tree"})
        tree.append({"path": "Notes/missing.md", "type": "blob"})
        return httpx.Response(200, json={"tree": tree})
    prefix = "/repos/owner/vault/contents/"
    if path.startswith(prefix):
        note_path = path[len(prefix) :]
        if note_path not in NOTES:
            return httpx.Response(404, json={"message": "Not Found"})
        return httpx.Response(200, json={"content": _encoded(NOTES[note_path])})
    return httpx.Response(500)


@pytest.mark.asyncio
async def test_github_source_fetches_and_decodes_notes() -> None:
    async with httpx.AsyncClient(transport=httpx.MockTransport(_vault_handler)) as client:
        source = GitHubVaultSource(repo="owner/vault", token="secret", client=client)
        documents = await source.fetch_documents()

    by_id = {doc.id: doc for doc in documents}
    assert sorted(by_id) == ["note:Notes/k8s.md", "note:Notes/react.md"]
    assert by_id["note:Notes/k8s.md"].title == "Kubernetes Notes"
    assert by_id["note:Notes/k8s.md"].body == "Kubernetes clusters schedule pods."
    assert by_id["note:Notes/react.md"].title == "react"
    assert all(doc.content_type == "note" for doc in documents)


@pytest.mark.asyncio
async def test_github_source_sends_token() -> None:
    seen: list[str | None] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.headers.get("authorization"))
        return httpx.Response(200, json={"tree": []})

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        await GitHubVaultSource(repo="owner/vault", token="secret", client=client).fetch_documents()

    assert seen == ["Bearer secret"]


@pytest.mark.asyncio
async def test_unreachable_tree_is_an_ingestion_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, json={"message": "unavailable"})

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        source = GitHubVaultSource(repo="owner/vault", client=client)
        with pytest.raises(IngestionError, match="owner/vault"):
            await source.fetch_documents()


def test_missing_repo_is_rejected(monkeypatch) -> None:
    monkeypatch.delenv("GITHUB_REPO", raising=False)

    with pytest.raises(ValueError, match="GITHUB_REPO"):
        GitHubVaultSource()
