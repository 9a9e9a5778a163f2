"""
taskapi/main.py — FastAPI application entry point
Includes: lifespan management (logging, rate-limiter eviction thread),
          the request pipeline, JSON error envelopes, health endpoint.
Run:
    taskapi                       (console script)
    uvicorn taskapi.main:app --port 8080
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.routing import APIRoute
from loguru import logger
from starlette.exceptions import HTTPException as StarletteHTTPException

from taskapi.config import Settings, get_settings
from taskapi.core.errors import TaskAPIError, error_response
from taskapi.core.logging import setup_logging
from taskapi.core.pipeline import RequestID, build_pipeline
from taskapi.core.rate_limiter import RateLimiter
from taskapi.core.store import TaskStore
from taskapi.models import ErrorResponse, HealthResponse
from taskapi.routers import tasks


def _validate_env(settings: Settings) -> None:
    """Warn loudly about an unusable or unsafe key allow-list."""
    if not settings.api_keys:
        logger.critical("API_KEYS is empty: every /v1 request will be rejected with 401.")
    elif settings.is_production and settings.uses_default_keys:
        logger.warning("Production is running with a built-in development API key. Set API_KEYS.")


def _log_routes(app: FastAPI) -> None:
    lines = [
        f"  {method} {route.path}"
        for route in app.routes
        if isinstance(route, APIRoute)
        for method in sorted(route.methods)
    ]
    logger.info("Registered routes:\n" + "\n".join(lines))


# ──────────────────────────────────────────────────────────────────────────────
# Application factory
# ──────────────────────────────────────────────────────────────────────────────

def create_app(
    settings: Optional[Settings] = None,
    store: Optional[TaskStore] = None,
    limiter: Optional[RateLimiter] = None,
    request_ids: Optional[RequestID] = None,
) -> FastAPI:
    """
    Build a fully wired app. Collaborators can be injected (tests pass a fake
    clock limiter or a pre-filled store); by default each app owns fresh ones.
    """
    settings = settings or get_settings()
    store = store or TaskStore()
    limiter = limiter or RateLimiter(
        capacity=settings.rate_limit_per_minute,
        window_seconds=settings.rate_limit_window_seconds,
        cleanup_seconds=settings.visitor_cleanup_seconds,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        """Startup → yield → shutdown."""
        setup_logging(settings.log_level, serialize=settings.is_production)
        logger.info("Task API starting up...")
        _validate_env(settings)
        limiter.start()
        _log_routes(app)
        logger.info("Startup complete.")
        yield
        limiter.stop()
        logger.info(f"Shutting down Task API ({store.count()} tasks discarded).")

    app = FastAPI(
        title="Task API",
        description="In-memory task CRUD protected by API keys and per-client rate limiting.",
        version="1.0.0",
        docs_url="/docs" if not settings.is_production else None,
        redoc_url=None,
        lifespan=lifespan,
        redirect_slashes=False,
    )
    app.state.settings = settings
    app.state.store = store
    app.state.limiter = limiter

    # ── Error envelopes: {"error": "..."} everywhere ─────────────────────────
    @app.exception_handler(TaskAPIError)
    async def handle_task_api_error(request: Request, exc: TaskAPIError) -> JSONResponse:
        return error_response(exc)

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content=ErrorResponse(error=str(exc.detail).lower()).model_dump(),
            headers=getattr(exc, "headers", None),
        )

    # ── Request pipeline: logger → request id → rate limit → api key ─────────
    pipeline = build_pipeline(settings, limiter, request_ids)
    app.state.pipeline = pipeline
    app.middleware("http")(pipeline)

    # ── Routers ──────────────────────────────────────────────────────────────
    app.include_router(tasks.router, prefix="/v1/tasks", tags=["tasks"])

    @app.get("/health", response_model=HealthResponse, tags=["health"])
    async def health() -> HealthResponse:
        """Liveness probe. Public (no API key), but still rate limited."""
        return HealthResponse()

    return app


app = create_app()


def main() -> None:
    """Serve with uvicorn. SIGINT/SIGTERM drain in-flight requests before exit."""
    settings = get_settings()
    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        timeout_graceful_shutdown=settings.shutdown_timeout_seconds,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
