"""
taskapi/utils/validators.py — Query parameter parsing and request body validation
Every failure raises InvalidInput with the message the client will see.
"""
from __future__ import annotations

import re
from typing import Optional, Type, TypeVar

from loguru import logger
from pydantic import BaseModel, ValidationError

from taskapi.core.errors import InvalidInput

T = TypeVar("T", bound=BaseModel)

_INT_RE = re.compile(r"^[+-]?[0-9]+$")

# Largest id accepted from a query string (signed 64-bit).
MAX_TASK_ID = 2**63 - 1

_TRUE_VALUES = {"1", "t", "T", "TRUE", "true", "True"}
_FALSE_VALUES = {"0", "f", "F", "FALSE", "false", "False"}


def parse_task_id(raw: Optional[str], required: bool = False) -> Optional[int]:
    """
    Parse an `id` query parameter into a positive int.
    Returns None when absent and not required.
    """
    if raw is None or raw == "":
        if required:
            raise InvalidInput("id parameter is required")
        return None
    if not _INT_RE.match(raw) or len(raw.lstrip("+-").lstrip("0")) > len(str(MAX_TASK_ID)):
        raise InvalidInput("invalid id")
    value = int(raw)
    if value <= 0 or value > MAX_TASK_ID:
        raise InvalidInput("invalid id")
    return value


def parse_bool_param(raw: str, name: str) -> bool:
    """Accepts 1/t/T/TRUE/true/True and 0/f/F/FALSE/false/False."""
    if raw in _TRUE_VALUES:
        return True
    if raw in _FALSE_VALUES:
        return False
    raise InvalidInput(f"invalid {name} parameter")


def normalize_title(title: str, max_length: int) -> str:
    """Trim surrounding whitespace and enforce 1..max_length characters."""
    title = title.strip()
    if not title:
        raise InvalidInput("invalid title")
    if len(title) > max_length:
        raise InvalidInput(f"title exceeds maximum length of {max_length} characters")
    return title


def parse_body(model_class: Type[T], raw: bytes) -> T:
    """
    Decode a JSON request body into `model_class`.
    Malformed JSON and schema mismatches both become `invalid request body`.
    """
    try:
        return model_class.model_validate_json(raw or b"")
    except ValidationError as exc:
        logger.debug(
            f"{model_class.__name__} body rejected: {exc.error_count()} error(s) | "
            f"Body: {raw[:200]!r}"
        )
        raise InvalidInput("invalid request body") from exc
