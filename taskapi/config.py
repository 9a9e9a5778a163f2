"""
taskapi/config.py — Pydantic BaseSettings configuration
Every knob is overridable from the environment or a local .env file
(API_KEYS takes a JSON list, e.g. API_KEYS='["k1", "k2"]').
"""
from __future__ import annotations

from functools import lru_cache

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Keys shipped for local development. Startup warns if production runs with them.
DEFAULT_API_KEYS = ["secret12345", "dev-key-001", "production-key-1"]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ── Application ────────────────────────────────────────────────────────────
    environment: str = "development"
    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = 8080
    shutdown_timeout_seconds: int = 30

    # ── Authentication ─────────────────────────────────────────────────────────
    api_keys: list[str] = list(DEFAULT_API_KEYS)
    api_key_header: str = "X-API-KEY"

    # ── Rate limiting (fixed window per client address) ────────────────────────
    rate_limit_per_minute: int = 10
    rate_limit_window_seconds: float = 60.0
    visitor_cleanup_seconds: float = 300.0

    # ── Task validation ────────────────────────────────────────────────────────
    max_title_length: int = 200

    @field_validator("environment")
    @classmethod
    def validate_env(cls, v: str) -> str:
        allowed = {"development", "production", "testing"}
        if v not in allowed:
            raise ValueError(f"environment must be one of {allowed}")
        return v

    @field_validator(
        "rate_limit_per_minute",
        "rate_limit_window_seconds",
        "visitor_cleanup_seconds",
        "max_title_length",
    )
    @classmethod
    def validate_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("must be greater than zero")
        return v

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def uses_default_keys(self) -> bool:
        return any(key in DEFAULT_API_KEYS for key in self.api_keys)


@lru_cache()
def get_settings() -> Settings:
    """Return cached Settings instance. Use this everywhere."""
    return Settings()
