"""
taskapi/core/pipeline.py — Ordered request pipeline
Every request passes through the stages built by build_pipeline(), outermost
first: RequestLogger → RequestID → RateLimit → APIKeyAuth → router.

A stage either short-circuits (returns a response without calling call_next)
or calls call_next and may post-process what comes back.
"""
from __future__ import annotations

import secrets
import threading
import time
from functools import partial
from typing import Awaitable, Callable, Iterable, Optional

from loguru import logger
from starlette.requests import Request
from starlette.responses import Response

from taskapi.config import Settings
from taskapi.core import logging as app_logging
from taskapi.core.errors import RateLimited, TaskAPIError, Unauthorized, error_response
from taskapi.core.rate_limiter import RateLimiter, client_identity

CallNext = Callable[[Request], Awaitable[Response]]

REQUEST_ID_HEADER = "X-Request-ID"


class PipelineStage:
    """Base stage: pass straight through."""

    async def handle(self, request: Request, call_next: CallNext) -> Response:
        return await call_next(request)


# ──────────────────────────────────────────────────────────────────────────────
# Stages
# ──────────────────────────────────────────────────────────────────────────────

class RequestLogger(PipelineStage):
    """Logs method, path, final status, duration and request id after the chain."""

    async def handle(self, request: Request, call_next: CallNext) -> Response:
        start = time.perf_counter()
        response = await call_next(request)
        app_logging.log_request(
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            duration_ms=(time.perf_counter() - start) * 1000,
            request_id=getattr(request.state, "request_id", None),
        )
        return response


class RequestID(PipelineStage):
    """
    Tags each request with a correlation id (req-1, req-2, ...).
    The counter belongs to this instance, so every app gets its own sequence.
    """

    def __init__(self, prefix: str = "req") -> None:
        self.prefix = prefix
        self._lock = threading.Lock()
        self._counter = 0

    def next_id(self) -> str:
        with self._lock:
            self._counter += 1
            value = self._counter
        return f"{self.prefix}-{value}"

    async def handle(self, request: Request, call_next: CallNext) -> Response:
        request_id = self.next_id()
        request.state.request_id = request_id
        with logger.contextualize(request_id=request_id):
            response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response


class RateLimit(PipelineStage):
    """Rejects the request with 429 once the client's bucket is empty."""

    def __init__(self, limiter: RateLimiter) -> None:
        self.limiter = limiter

    async def handle(self, request: Request, call_next: CallNext) -> Response:
        identity = client_identity(request)
        if not self.limiter.allow(identity):
            logger.warning(f"Rate limit exceeded for {identity} on {request.url.path}")
            return error_response(
                RateLimited(retry_after=self.limiter.retry_after(identity))
            )
        return await call_next(request)


class APIKeyAuth(PipelineStage):
    """Requires a known API key on every path under `protected_prefix`."""

    def __init__(
        self,
        api_keys: Iterable[str],
        header_name: str = "X-API-KEY",
        protected_prefix: str = "/v1",
    ) -> None:
        self._api_keys = [key for key in api_keys if key]
        self.header_name = header_name
        self.protected_prefix = protected_prefix.rstrip("/")

    def is_protected(self, path: str) -> bool:
        return path == self.protected_prefix or path.startswith(self.protected_prefix + "/")

    def is_valid_key(self, candidate: Optional[str]) -> bool:
        if not candidate:
            return False
        # Compare against every key, no early exit.
        matched = False
        for key in self._api_keys:
            if secrets.compare_digest(candidate.encode("utf-8"), key.encode("utf-8")):
                matched = True
        return matched

    async def handle(self, request: Request, call_next: CallNext) -> Response:
        if self.is_protected(request.url.path):
            if not self.is_valid_key(request.headers.get(self.header_name)):
                logger.info(f"Rejected request to {request.url.path}: missing or invalid API key")
                return error_response(Unauthorized())
        return await call_next(request)


# ──────────────────────────────────────────────────────────────────────────────
# Composition
# ──────────────────────────────────────────────────────────────────────────────

class Pipeline:
    """
    Runs `stages` in order around the downstream app. Installed as a single
    HTTP middleware: app.middleware("http")(pipeline).
    """

    def __init__(self, stages: Iterable[PipelineStage]) -> None:
        self.stages = list(stages)

    def stage_names(self) -> list[str]:
        return [type(stage).__name__ for stage in self.stages]

    async def __call__(self, request: Request, call_next: CallNext) -> Response:
        return await self._run(0, call_next, request)

    async def _run(self, index: int, endpoint: CallNext, request: Request) -> Response:
        if index < len(self.stages):
            return await self.stages[index].handle(
                request, partial(self._run, index + 1, endpoint)
            )
        try:
            return await endpoint(request)
        except Exception as exc:
            # Anything the exception handlers did not turn into a response.
            app_logging.log_error(
                "pipeline",
                "dispatch",
                exc,
                {
                    "method": request.method,
                    "path": request.url.path,
                    "request_id": getattr(request.state, "request_id", None),
                },
            )
            return error_response(TaskAPIError())


def build_pipeline(
    settings: Settings,
    limiter: RateLimiter,
    request_ids: Optional[RequestID] = None,
) -> Pipeline:
    """The fixed stage order every request goes through."""
    return Pipeline([
        RequestLogger(),
        request_ids or RequestID(),
        RateLimit(limiter),
        APIKeyAuth(settings.api_keys, header_name=settings.api_key_header),
    ])
