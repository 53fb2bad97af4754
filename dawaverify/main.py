# =============================================
# File: dawaverify/main.py
# Purpose: FastAPI app: scan lifecycle, history, dashboards, metrics
# =============================================
from __future__ import annotations

import time
from contextlib import asynccontextmanager

from fastapi import FastAPI
from loguru import logger

from dawaverify.routers import dashboard, history, metrics, roles, scans, waste
from dawaverify.services.analysis import AnalysisClient, OpenAIAnalysisClient
from dawaverify.services.history import HistoryStore
from dawaverify.services.narrative import NarrativeBoard
from dawaverify.services.persistence import Persistence, persistence_from_env
from dawaverify.services.session import ScanRegistry
from dawaverify.utils import slog
from dawaverify.utils.logging import configure_logging
from dawaverify.utils.metrics import record_endpoint


def create_app(
    client: AnalysisClient | None = None,
    persistence: Persistence | None = None,
    max_sessions: int = 256,
) -> FastAPI:
    """
    Build the service. The history store, the analysis client and the session
    registry are created once per app in the lifespan and kept on app.state;
    pass `client` / `persistence` to swap the real collaborators (tests do).
    """
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging()
        store = HistoryStore(persistence or persistence_from_env())
        store.load()
        analysis = client or OpenAIAnalysisClient()
        registry = ScanRegistry(analysis, store, max_sessions=max_sessions)
        app.state.history = store
        app.state.analysis = analysis
        app.state.scans = registry
        app.state.inspector_board = NarrativeBoard(analysis.summarize, name="inspector")
        app.state.waste_board = NarrativeBoard(analysis.summarize_waste, name="waste")
        logger.info(f"[startup] history ready with {len(store)} record(s)")
        try:
            yield
        finally:
            await registry.aclose()

    app = FastAPI(title="DawaVerify", lifespan=lifespan)

    @app.middleware("http")
    async def _logging_middleware(request, call_next):
        start = time.perf_counter()
        req_id = slog.new_request_id()
        client_ip = request.client.host if request.client else None
        try:
            response = await call_next(request)
        except Exception as e:
            latency_ms = int((time.perf_counter() - start) * 1000)
            ctx = getattr(request.state, "log_context", {})
            slog.log_event(
                "request.error",
                request_id=req_id,
                path=str(request.url.path),
                method=request.method,
                latency_ms=latency_ms,
                client_ip=client_ip,
                error=str(e),
                **(ctx or {}),
            )
            raise
        latency_ms = int((time.perf_counter() - start) * 1000)
        ctx = getattr(request.state, "log_context", {}) or {}
        ctx.setdefault("rate_limited", response.status_code == 429)
        slog.finalize_request_log(
            request_id=req_id,
            method=request.method,
            path=str(request.url.path),
            status=response.status_code,
            latency_ms=latency_ms,
            client_ip=client_ip,
            ctx=ctx,
        )
        route = request.scope.get("route")
        record_endpoint(
            method=request.method,
            path=getattr(route, "path", None) or str(request.url.path),
            latency_ms=latency_ms,
        )
        response.headers["X-Request-ID"] = req_id
        return response

    @app.get("/health")
    def health():
        return {"status": "ok"}

    app.include_router(scans.router, tags=["scans"])
    app.include_router(history.router, tags=["history"])
    app.include_router(dashboard.router, tags=["dashboard"])
    app.include_router(waste.router, tags=["waste"])
    app.include_router(roles.router, tags=["roles"])
    app.include_router(metrics.router)
    return app


app = create_app()
