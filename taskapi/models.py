"""
taskapi/models.py — Pydantic data schemas
Task records plus the request/response bodies of the HTTP surface.
"""
from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field, StrictBool, StrictStr, field_validator


# ──────────────────────────────────────────────────────────────────────────────
# Task record — owned by TaskStore, handed out only as copies
# ──────────────────────────────────────────────────────────────────────────────

class Task(BaseModel):
    id: int = Field(gt=0)
    title: str
    done: bool = False


# ──────────────────────────────────────────────────────────────────────────────
# Request bodies
# ──────────────────────────────────────────────────────────────────────────────

class CreateTaskRequest(BaseModel):
    # Missing or null title decodes as "" and is rejected by the title check, not the decoder.
    title: StrictStr = ""

    @field_validator("title", mode="before")
    @classmethod
    def null_title_is_empty(cls, v: Any) -> Any:
        return "" if v is None else v


class UpdateTaskRequest(BaseModel):
    done: StrictBool


# ──────────────────────────────────────────────────────────────────────────────
# Response bodies
# ──────────────────────────────────────────────────────────────────────────────

class UpdatedResponse(BaseModel):
    updated: bool = True


class ErrorResponse(BaseModel):
    error: str


class HealthResponse(BaseModel):
    status: Literal["healthy"] = "healthy"
