"""
tests/conftest.py — Shared pytest fixtures
"""
from __future__ import annotations

import json
from typing import Iterator

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from loguru import logger

from taskapi.config import Settings
from taskapi.core.rate_limiter import RateLimiter
from taskapi.core.store import TaskStore
from taskapi.main import create_app

TEST_API_KEY = "test-key-123"
AUTH = {"X-API-KEY": TEST_API_KEY}


class FakeClock:
    """Monotonic clock the tests move by hand."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_settings(**overrides) -> Settings:
    values = {
        "environment": "testing",
        "log_level": "DEBUG",
        "api_keys": [TEST_API_KEY, "second-key"],
        "rate_limit_per_minute": 1000,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> TaskStore:
    return TaskStore()


@pytest.fixture
def limiter(settings: Settings, clock: FakeClock) -> RateLimiter:
    return RateLimiter(
        capacity=settings.rate_limit_per_minute,
        window_seconds=settings.rate_limit_window_seconds,
        cleanup_seconds=settings.visitor_cleanup_seconds,
        clock=clock,
    )


@pytest.fixture
def app(settings: Settings, store: TaskStore, limiter: RateLimiter) -> FastAPI:
    return create_app(settings, store=store, limiter=limiter)


@pytest.fixture
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def log_records() -> Iterator[list[dict]]:
    """
    Structured (JSON) log lines emitted while the test runs.
    Request the fixture after `client` so the app's logging setup does not remove the sink.
    """
    records: list[dict] = []

    def sink(message) -> None:
        try:
            records.append(json.loads(message.record["message"]))
        except ValueError:
            pass

    handler_id = logger.add(sink, level="DEBUG", format="{message}")
    yield records
    logger.remove(handler_id)
