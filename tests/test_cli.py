"""CLI tests for the index, search and status commands."""

from __future__ import annotations

from pathlib import Path

import pytest
from typer.testing import CliRunner

import vault_search.main as main_module
from vault_search.errors import IngestionError
from vault_search.runtime import build_runtime

from conftest import make_document


DOCS = [
    make_document(
        "note:k8s.md",
        "Kubernetes Notes",
        "Kubernetes networking connects services in the cluster.",
    ),
    make_document(
        "technology:rust",
        "Rust",
        "Rust: Systems programming language Category: language",
        content_type="technology",
    ),
]


class _StaticSource:
    async def fetch_documents(self):
        return list(DOCS)


class _UnreachableSource:
    async def fetch_documents(self):
        raise IngestionError("vault unreachable")


@pytest.fixture()
def cli_env(tmp_path: Path, monkeypatch, embedder):
    """Route every CLI command to a tmp database and the fake embedder."""
    calls: list[dict] = []
    state = {"sources": [_StaticSource()]}

    def fake_build_runtime(**kwargs):
        calls.append(kwargs)
        sources = kwargs.get("sources")
        return build_runtime(
            db_path=str(tmp_path / "cli.duckdb"),
            backend=kwargs.get("backend") or "blob",
            embedding_provider=embedder,
            sources=state["sources"] if sources is None else sources,
        )

    monkeypatch.setattr(main_module, "build_runtime", fake_build_runtime)
    return calls, state


def test_index_then_search(cli_env) -> None:
    calls, _ = cli_env
    runner = CliRunner()

    indexed = runner.invoke(main_module.app, ["index", "--repo", "owner/vault"])
    searched = runner.invoke(main_module.app, ["search", "kubernetes", "--limit", "1"])

    assert indexed.exit_code == 0, indexed.output
    assert "Reindex complete" in indexed.output
    assert calls[0]["vault_repo"] == "owner/vault"
    assert searched.exit_code == 0, searched.output
    assert "Kubernetes" in searched.output


def test_search_with_type_filter(cli_env) -> None:
    runner = CliRunner()
    runner.invoke(main_module.app, ["index"])

    result = runner.invoke(main_module.app, ["search", "language", "--type", "technology"])

    assert result.exit_code == 0, result.output
    assert "Rust" in result.output
    assert "Kubernetes" not in result.output


def test_search_rejects_unknown_type(cli_env) -> None:
    result = CliRunner().invoke(main_module.app, ["search", "rust", "--type", "recipe"])

    assert result.exit_code == 2
    assert "Invalid option" in result.output


def test_status_reports_generation(cli_env) -> None:
    runner = CliRunner()

    empty = runner.invoke(main_module.app, ["status"])
    runner.invoke(main_module.app, ["index"])
    populated = runner.invoke(main_module.app, ["status"])

    assert "No index has been published yet" in empty.output
    assert populated.exit_code == 0
    assert "Index status" in populated.output


def test_index_failure_exits_non_zero(cli_env) -> None:
    _, state = cli_env
    state["sources"] = [_UnreachableSource()]

    result = CliRunner().invoke(main_module.app, ["index"])

    assert result.exit_code == 1
    assert "Reindex failed" in result.output


def test_index_without_sources_exits_with_usage_error(cli_env) -> None:
    _, state = cli_env
    state["sources"] = []

    result = CliRunner().invoke(main_module.app, ["index"])

    assert result.exit_code == 2
    assert "No content sources configured" in result.output


@pytest.fixture()
def keyless_env(tmp_path: Path, monkeypatch):
    monkeypatch.delenv("GOOGLE_API_KEY", raising=False)
    monkeypatch.delenv("GITHUB_REPO", raising=False)
    monkeypatch.delenv("VAULT_SEARCH_CATALOG_PATH", raising=False)
    monkeypatch.setenv("VAULT_SEARCH_DB_PATH", str(tmp_path / "keyless.duckdb"))


def test_status_works_without_google_api_key(keyless_env) -> None:
    result = CliRunner().invoke(main_module.app, ["status"])

    assert result.exit_code == 0, result.output
    assert "No index has been published yet" in result.output


def test_search_without_google_api_key_is_a_configuration_error(keyless_env) -> None:
    result = CliRunner().invoke(main_module.app, ["search", "kubernetes"])

    assert result.exit_code == 2
    assert "Configuration error" in result.output
    assert "GOOGLE_API_KEY" in result.output


def test_runtime_defers_embedder_until_needed(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.delenv("GOOGLE_API_KEY", raising=False)
    runtime = build_runtime(db_path=str(tmp_path / "lazy.duckdb"), backend="blob", sources=[])
    try:
        with pytest.raises(ValueError, match="GOOGLE_API_KEY"):
            runtime.query_engine
    finally:
        runtime.close()
