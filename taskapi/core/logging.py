"""
taskapi/core/logging.py — loguru structured JSON logging setup
One stdout sink. Structured events are built as dicts and emitted as JSON so
every line can be traced by its request_id.
"""
from __future__ import annotations

import json
import sys
import traceback
from datetime import datetime, timezone
from typing import Any, Optional

from loguru import logger


def setup_logging(log_level: str = "INFO", serialize: bool = False) -> None:
    """
    Configure loguru for output to stdout.
    serialize=True wraps every record in loguru's own JSON envelope (production).
    """
    # Remove default loguru handler
    logger.remove()

    logger.add(
        sys.stdout,
        level=log_level.upper(),
        format="{time:YYYY-MM-DDTHH:mm:ss} | {level: <8} | {message}",
        serialize=serialize,
        backtrace=True,
        diagnose=False,       # No local variables in tracebacks
        colorize=False,
    )


def _build_log_record(
    component: str,
    operation: str,
    extra: Optional[dict[str, Any]] = None,
) -> dict[str, Any]:
    """Build a base structured log record."""
    record: dict[str, Any] = {
        "timestamp": datetime.now(timezone.utc).isoformat(timespec="seconds"),
        "component": component,
        "operation": operation,
    }
    if extra:
        record.update(extra)
    return record


# ──────────────────────────────────────────────────────────────────────────────
# Structured log events
# ──────────────────────────────────────────────────────────────────────────────

def log_request(
    method: str,
    path: str,
    status_code: int,
    duration_ms: float,
    request_id: Optional[str],
) -> None:
    """One line per request, written after the whole pipeline has finished."""
    record = _build_log_record("pipeline", "request", {
        "method": method,
        "path": path,
        "status": status_code,
        "duration_ms": round(duration_ms, 3),
        "request_id": request_id,
    })
    logger.info(json.dumps(record))


def log_task_change(operation: str, task_id: int, **fields: Any) -> None:
    """Every store mutation (create | update | delete)."""
    record = _build_log_record("task_store", operation, {"task_id": task_id, **fields})
    logger.debug(json.dumps(record))


def log_eviction(evicted: int, remaining: int) -> None:
    """Rate limiter sweep that dropped idle visitors."""
    record = _build_log_record("rate_limiter", "evict_visitors", {
        "evicted": evicted,
        "remaining": remaining,
    })
    logger.info(json.dumps(record))


def log_error(
    component: str,
    operation: str,
    error: Exception,
    context: Optional[dict[str, Any]] = None,
) -> None:
    """Unhandled errors, logged with full context."""
    tb = "".join(traceback.format_exception(type(error), error, error.__traceback__))
    record = _build_log_record(component, operation, {
        "error_type": type(error).__name__,
        "error_message": str(error),
        "stack_trace": tb[:2000],
        "context": context or {},
    })
    logger.error(json.dumps(record))
