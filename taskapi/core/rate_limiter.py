"""
taskapi/core/rate_limiter.py — Per-client fixed-window token bucket
Each client address gets a bucket of `capacity` tokens. Once `window_seconds`
have passed since the window started, the bucket is reset to full on the next
request (no continuous refill, so a burst across a window boundary is allowed).
Idle visitors are evicted by a background daemon thread.
"""
from __future__ import annotations

import math
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional

from loguru import logger
from slowapi.util import get_remote_address
from starlette.requests import Request

from taskapi.core import logging as app_logging

Clock = Callable[[], float]


def client_identity(request: Request) -> str:
    """Rate-limit key: the peer address only. Proxy headers are not trusted."""
    return get_remote_address(request)


@dataclass
class Visitor:
    identity: str
    tokens: int
    window_start: float
    last_seen: float


class RateLimiter:
    """
    Visitor map guarded by one lock. allow() is the only hot path; sweep()
    runs from the eviction thread every `cleanup_seconds`.
    """

    def __init__(
        self,
        capacity: int = 10,
        window_seconds: float = 60.0,
        cleanup_seconds: float = 300.0,
        clock: Clock = time.monotonic,
    ) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self.capacity = capacity
        self.window_seconds = window_seconds
        self.cleanup_seconds = cleanup_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._visitors: dict[str, Visitor] = {}
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    # ── Admission ─────────────────────────────────────────────────────────────

    def allow(self, identity: str) -> bool:
        """Spend one token for `identity`. False when the bucket is empty."""
        with self._lock:
            now = self._clock()
            visitor = self._visitors.get(identity)
            if visitor is None:
                visitor = Visitor(identity, self.capacity, now, now)
                self._visitors[identity] = visitor

            if now - visitor.window_start >= self.window_seconds:
                visitor.tokens = self.capacity
                visitor.window_start = now

            visitor.last_seen = now

            if visitor.tokens > 0:
                visitor.tokens -= 1
                return True
            return False

    def retry_after(self, identity: str) -> int:
        """Whole seconds until the identity's window resets (0 if unknown)."""
        with self._lock:
            visitor = self._visitors.get(identity)
            if visitor is None:
                return 0
            remaining = visitor.window_start + self.window_seconds - self._clock()
        return max(0, math.ceil(remaining))

    def visitor_count(self) -> int:
        with self._lock:
            return len(self._visitors)

    # ── Eviction ──────────────────────────────────────────────────────────────

    def sweep(self) -> int:
        """Drop visitors idle for longer than cleanup_seconds. Returns the count."""
        with self._lock:
            now = self._clock()
            stale = [
                identity
                for identity, v in self._visitors.items()
                if now - v.last_seen > self.cleanup_seconds
            ]
            for identity in stale:
                del self._visitors[identity]
            remaining = len(self._visitors)

        if stale:
            app_logging.log_eviction(len(stale), remaining)
        return len(stale)

    def _eviction_worker(self) -> None:
        while not self._stop.wait(self.cleanup_seconds):
            try:
                self.sweep()
            except Exception as exc:
                app_logging.log_error("rate_limiter", "sweep", exc)

    def start(self) -> None:
        """Launch the eviction daemon thread (idempotent)."""
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(
            target=self._eviction_worker,
            daemon=True,
            name="rate-limiter-eviction",
        )
        self._thread.start()
        logger.info(
            f"Rate limiter started: {self.capacity} req / {self.window_seconds:g}s, "
            f"sweeping idle visitors every {self.cleanup_seconds:g}s."
        )

    def stop(self, timeout: Optional[float] = 5.0) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
