"""FastAPI application factory for the k8stream status API.

Usage::

    from k8stream.api.app import create_app

    app = create_app(batcher=batcher, store=store, watcher=watcher)

Routes:
    GET /health   -- liveness, always 200 while the process serves requests.
    GET /status   -- run id, watch sync state, batcher and store state.
    GET /metrics  -- Prometheus exposition format.
"""

from __future__ import annotations

from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from k8stream.observability.logging import get_logger

_log = get_logger("api.app")


def create_app(batcher: Any, store: Any, watcher: Any = None) -> FastAPI:
    """Create the status API.

    Args:
        batcher:  Batcher instance (run id, queue depth, pending size).
        store:    LocalStore instance (registered tables).
        watcher:  Optional Watcher; reports whether all streams have synced.
    """
    from k8stream import __version__

    app = FastAPI(
        title="k8stream",
        summary="Kubernetes event stream status API",
        version=__version__,
    )

    app.state.batcher = batcher
    app.state.store = store
    app.state.watcher = watcher

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/status")
    async def status(request: Request) -> dict[str, Any]:
        state = request.app.state
        tables = state.store.tables()
        return {
            "version": __version__,
            "run_id": state.batcher.run_id,
            "synced": bool(state.watcher.synced) if state.watcher is not None else False,
            "queue_depth": state.batcher.queue_depth,
            "pending": state.batcher.pending_count,
            "store_tables": len(tables),
        }

    @app.get("/metrics")
    async def metrics() -> Response:
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Catch-all for unhandled exceptions; never expose stack traces."""
        _log.error(
            "unhandled_exception",
            path=str(request.url.path),
            method=request.method,
            error=str(exc),
        )
        return JSONResponse(
            status_code=500,
            content={"error": "INTERNAL_ERROR", "detail": "An unexpected error occurred."},
        )

    return app
