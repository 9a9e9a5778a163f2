"""
taskapi/routers/tasks.py — Task CRUD endpoints
All four verbs share the single path /v1/tasks; the record is addressed with
the `id` query parameter. API-key auth and rate limiting happen in the
pipeline before any of these run.
"""
from __future__ import annotations

from typing import Optional, Union

from fastapi import APIRouter, Depends, Query, Request, status

from taskapi.core.store import TaskStore
from taskapi.models import CreateTaskRequest, Task, UpdatedResponse, UpdateTaskRequest
from taskapi.utils.validators import (
    normalize_title,
    parse_body,
    parse_bool_param,
    parse_task_id,
)

router = APIRouter()


def get_store(request: Request) -> TaskStore:
    return request.app.state.store


def get_max_title_length(request: Request) -> int:
    return request.app.state.settings.max_title_length


# ──────────────────────────────────────────────────────────────────────────────
# GET /v1/tasks — one task by id, or all tasks optionally filtered by done
# ──────────────────────────────────────────────────────────────────────────────

@router.get("", response_model=Union[Task, list[Task]])
async def get_tasks(
    task_id_param: Optional[str] = Query(None, alias="id"),
    done: Optional[str] = Query(None),
    store: TaskStore = Depends(get_store),
) -> Union[Task, list[Task]]:
    task_id = parse_task_id(task_id_param)
    if task_id is not None:
        return store.get_by_id(task_id)

    if done is not None and done != "":
        return store.get_by_status(parse_bool_param(done, "done"))
    return store.get_all()


# ──────────────────────────────────────────────────────────────────────────────
# POST /v1/tasks
# ──────────────────────────────────────────────────────────────────────────────

@router.post("", response_model=Task, status_code=status.HTTP_201_CREATED)
async def create_task(
    request: Request,
    store: TaskStore = Depends(get_store),
    max_title_length: int = Depends(get_max_title_length),
) -> Task:
    body = parse_body(CreateTaskRequest, await request.body())
    title = normalize_title(body.title, max_title_length)
    return store.create(title)


# ──────────────────────────────────────────────────────────────────────────────
# PATCH /v1/tasks?id=N — set the done flag
# ──────────────────────────────────────────────────────────────────────────────

@router.patch("", response_model=UpdatedResponse)
async def update_task(
    request: Request,
    task_id_param: Optional[str] = Query(None, alias="id"),
    store: TaskStore = Depends(get_store),
) -> UpdatedResponse:
    task_id = parse_task_id(task_id_param, required=True)
    body = parse_body(UpdateTaskRequest, await request.body())
    store.update(task_id, body.done)
    return UpdatedResponse()


# ──────────────────────────────────────────────────────────────────────────────
# DELETE /v1/tasks?id=N
# ──────────────────────────────────────────────────────────────────────────────

@router.delete("", response_model=UpdatedResponse)
async def delete_task(
    task_id_param: Optional[str] = Query(None, alias="id"),
    store: TaskStore = Depends(get_store),
) -> UpdatedResponse:
    task_id = parse_task_id(task_id_param, required=True)
    store.delete(task_id)
    return UpdatedResponse()
