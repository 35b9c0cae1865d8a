"""
FastAPI server for vault search.

Exposes semantic search, the "strong matches" search, reindexing and index
status. Every route sits behind a shared API token, accepted either as a
bearer header or as a ``?token=`` query parameter.
"""

from __future__ import annotations

import hmac
import logging

from fastapi import Depends, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from .errors import IngestionError, ReindexError, SearchUnavailableError, StorageError
from .index_config import resolve_api_token
from .logging_setup import configure_logging
from .models import parse_content_type
from .runtime import SearchRuntime, build_runtime


logger = logging.getLogger(__name__)

DEFAULT_STRONG_THRESHOLD = 0.5
MAX_LIMIT = 50

app = FastAPI(title="vault-search", description="Semantic search over a personal vault")

_runtime: SearchRuntime | None = None


class UnauthorizedError(Exception):
    """Raised by the auth dependency when the request carries no valid token."""


@app.exception_handler(UnauthorizedError)
async def unauthorized_handler(request: Request, exc: UnauthorizedError) -> JSONResponse:
    return JSONResponse({"error": "unauthorized"}, status_code=401)


@app.exception_handler(RequestValidationError)
async def validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    messages = [
        f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}"
        for err in exc.errors()
    ]
    return JSONResponse({"error": "; ".join(messages)}, status_code=422)


def set_runtime(runtime: SearchRuntime | None) -> None:
    """Install the runtime used by every route (tests pass their own)."""
    global _runtime
    _runtime = runtime


def get_runtime() -> SearchRuntime:
    global _runtime
    if _runtime is None:
        _runtime = build_runtime()
    return _runtime


def _extract_token(request: Request) -> str | None:
    header = request.headers.get("authorization", "")
    scheme, _, credentials = header.partition(" ")
    if scheme.lower() == "bearer" and credentials.strip():
        return credentials.strip()
    return request.query_params.get("token") or None


def require_token(request: Request) -> None:
    expected = resolve_api_token()
    if expected is None:
        logger.warning("No API token configured; rejecting %s", request.url.path)
        raise UnauthorizedError()
    supplied = _extract_token(request)
    if supplied is None or not hmac.compare_digest(supplied, expected):
        raise UnauthorizedError()


async def _run_search(
    runtime: SearchRuntime,
    q: str,
    limit: int,
    type: str | None,
    threshold: float | None,
) -> JSONResponse | dict:
    try:
        content_type = parse_content_type(type)
    except ValueError as exc:
        return JSONResponse({"error": str(exc)}, status_code=400)

    try:
        results = await runtime.query_engine.search(
            q,
            limit=limit,
            content_type=content_type,
            score_threshold=threshold,
        )
    except SearchUnavailableError as exc:
        return JSONResponse({"error": str(exc)}, status_code=503)

    return {"results": [result.to_dict() for result in results]}


@app.get("/api/search", dependencies=[Depends(require_token)])
async def search(
    q: str = "",
    limit: int = Query(10, ge=1, le=MAX_LIMIT),
    type: str | None = None,
    runtime: SearchRuntime = Depends(get_runtime),
):
    """Top matches for *q*, one per document."""
    return await _run_search(runtime, q, limit, type, None)


@app.get("/api/search/strong", dependencies=[Depends(require_token)])
async def search_strong(
    q: str = "",
    limit: int = Query(10, ge=1, le=MAX_LIMIT),
    type: str | None = None,
    threshold: float = Query(DEFAULT_STRONG_THRESHOLD, ge=-1.0, le=1.0),
    runtime: SearchRuntime = Depends(get_runtime),
):
    """Like /api/search, but drops documents scoring below *threshold*."""
    return await _run_search(runtime, q, limit, type, threshold)


@app.post("/api/reindex", dependencies=[Depends(require_token)])
async def reindex(runtime: SearchRuntime = Depends(get_runtime)):
    """Rebuild the index from every configured source."""
    if not runtime.sources:
        return JSONResponse({"error": "No content sources configured"}, status_code=400)

    try:
        result = await runtime.pipeline.reindex_sources(runtime.sources)
    except IngestionError as exc:
        return JSONResponse({"error": str(exc)}, status_code=502)
    except ReindexError as exc:
        return JSONResponse({"error": str(exc)}, status_code=500)

    return {
        "indexed": result.indexed_count,
        "generation": result.generation,
        "documents": result.indexed_documents,
        "skipped_documents": result.skipped_documents,
        "failed_documents": result.failed_documents,
        "dropped_batches": result.dropped_batches,
    }


@app.get("/api/index/status", dependencies=[Depends(require_token)])
async def index_status(runtime: SearchRuntime = Depends(get_runtime)):
    """Report the live generation and the reindex lifecycle state."""
    try:
        info = await runtime.store.current_generation()
    except StorageError as exc:
        return JSONResponse({"error": str(exc)}, status_code=503)

    payload: dict = {
        "indexed": info is not None,
        "state": runtime.pipeline.state.value,
        "running": runtime.pipeline.is_running,
        "last_error": runtime.pipeline.last_error,
    }
    if info is not None:
        payload.update(
            {
                "generation": info.generation,
                "chunk_count": info.chunk_count,
                "document_count": info.document_count,
                "created_at": info.created_at,
            }
        )
    return payload


def run_server(host: str = "127.0.0.1", port: int = 8000, log_level: str | None = None):
    """Run the FastAPI server."""
    import uvicorn

    configure_logging(log_level)
    uvicorn.run(app, host=host, port=port, log_config=None)
