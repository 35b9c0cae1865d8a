import asyncio
import logging

from typer import Exit, Option, Typer
from typing import Annotated
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .errors import IngestionError, ReindexError, SearchUnavailableError
from .logging_setup import configure_logging
from .models import parse_content_type
from .runtime import SearchRuntime, build_runtime

app = Typer(help="Index and search a personal vault with semantic embeddings.")
console = Console()
logger = logging.getLogger(__name__)


DbPathOption = Annotated[
    str | None,
    Option("--db-path", help="DuckDB file (defaults to VAULT_SEARCH_DB_PATH)."),
]
BackendOption = Annotated[
    str | None,
    Option("--backend", help="Index backend: 'blob' or 'vector'."),
]


@app.callback()
def main(
    log_level: Annotated[
        str | None,
        Option("--log-level", help="Logging level (defaults to LOG_LEVEL or info)."),
    ] = None,
) -> None:
    configure_logging(log_level)


def _open_runtime(**kwargs) -> SearchRuntime:
    try:
        return build_runtime(**kwargs)
    except ValueError as exc:
        console.print(f"[bold red]Configuration error:[/] {exc}")
        raise Exit(code=2) from exc


def _check_embedder(runtime: SearchRuntime) -> None:
    try:
        runtime.embedder
    except ValueError as exc:
        console.print(f"[bold red]Configuration error:[/] {exc}")
        raise Exit(code=2) from exc


async def run_index(runtime: SearchRuntime) -> None:
    if not runtime.sources:
        console.print(
            "[bold red]No content sources configured.[/] "
            "Set GITHUB_REPO and/or VAULT_SEARCH_CATALOG_PATH."
        )
        raise Exit(code=2)

    with console.status("Rebuilding the search index..."):
        result = await runtime.pipeline.reindex_sources(runtime.sources)

    table = Table(show_header=False, box=None)
    table.add_row("Generation", result.generation)
    table.add_row("Chunks indexed", str(result.indexed_count))
    table.add_row("Documents", str(result.indexed_documents))
    table.add_row("Skipped", str(result.skipped_documents))
    table.add_row("Failed", str(result.failed_documents))
    table.add_row("Dropped batches", str(result.dropped_batches))
    console.print(
        Panel(table, title="Reindex complete", title_align="left", border_style="bold green")
    )


async def run_search(
    runtime: SearchRuntime,
    query: str,
    *,
    limit: int,
    content_type: str | None,
    threshold: float | None,
) -> None:
    results = await runtime.query_engine.search(
        query,
        limit=limit,
        content_type=parse_content_type(content_type),
        score_threshold=threshold,
    )
    if not results:
        console.print("[yellow]No matches.[/]")
        return

    table = Table(title=f"Results for {query!r}")
    table.add_column("Score", justify="right")
    table.add_column("Type")
    table.add_column("Title")
    table.add_column("Snippet", overflow="fold")
    for result in results:
        table.add_row(
            f"{result.score:.3f}",
            result.content_type,
            result.title,
            result.snippet.replace("\n", " "),
        )
    console.print(table)


async def run_status(runtime: SearchRuntime) -> None:
    info = await runtime.store.current_generation()
    if info is None:
        console.print("[yellow]No index has been published yet.[/]")
        return
    table = Table(show_header=False, box=None)
    table.add_row("Generation", info.generation)
    table.add_row("Created", info.created_at)
    table.add_row("Documents", str(info.document_count))
    table.add_row("Chunks", str(info.chunk_count))
    console.print(Panel(table, title="Index status", title_align="left", border_style="bold cyan"))


@app.command()
def index(
    db_path: DbPathOption = None,
    backend: BackendOption = None,
    catalog: Annotated[
        str | None,
        Option("--catalog", help="Projects/technologies JSON catalog."),
    ] = None,
    repo: Annotated[
        str | None,
        Option("--repo", help="GitHub vault repository, as owner/name."),
    ] = None,
    public_only: Annotated[
        bool,
        Option("--public-only", help="Only index notes under Public/."),
    ] = False,
) -> None:
    """Rebuild the index from the vault and the catalog."""
    runtime = _open_runtime(
        db_path=db_path,
        backend=backend,
        catalog_path=catalog,
        vault_repo=repo,
        public_only=public_only,
    )
    try:
        if runtime.sources:
            _check_embedder(runtime)
        asyncio.run(run_index(runtime))
    except (IngestionError, ReindexError) as exc:
        console.print(f"[bold red]Reindex failed:[/] {exc}")
        raise Exit(code=1) from exc
    finally:
        runtime.close()


@app.command()
def search(
    query: str,
    limit: Annotated[int, Option("--limit", "-n", min=1, help="Maximum results.")] = 10,
    content_type: Annotated[
        str | None,
        Option("--type", "-t", help="Only return note, project, or technology results."),
    ] = None,
    threshold: Annotated[
        float | None,
        Option("--threshold", help="Drop documents scoring below this similarity."),
    ] = None,
    db_path: DbPathOption = None,
    backend: BackendOption = None,
) -> None:
    """Search the published index."""
    runtime = _open_runtime(db_path=db_path, backend=backend, sources=[])
    try:
        _check_embedder(runtime)
        asyncio.run(
            run_search(
                runtime,
                query,
                limit=limit,
                content_type=content_type,
                threshold=threshold,
            )
        )
    except ValueError as exc:
        console.print(f"[bold red]Invalid option:[/] {exc}")
        raise Exit(code=2) from exc
    except SearchUnavailableError as exc:
        console.print(f"[bold red]Search unavailable:[/] {exc}")
        raise Exit(code=1) from exc
    finally:
        runtime.close()


@app.command()
def status(
    db_path: DbPathOption = None,
    backend: BackendOption = None,
) -> None:
    """Show the currently published index generation."""
    runtime = _open_runtime(db_path=db_path, backend=backend, sources=[])
    try:
        asyncio.run(run_status(runtime))
    finally:
        runtime.close()


@app.command()
def serve(
    host: Annotated[str, Option("--host", help="Interface to bind.")] = "127.0.0.1",
    port: Annotated[int, Option("--port", help="Port to listen on.")] = 8000,
) -> None:
    """Run the HTTP API."""
    from .server import run_server

    run_server(host=host, port=port)
