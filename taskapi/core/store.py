"""
taskapi/core/store.py — Concurrency-safe in-memory task repository
Single owner of every Task. Callers only ever receive copies, so a concurrent
update can never race with a caller reading a record it already holds.
"""
from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Iterator

from taskapi.core import logging as app_logging
from taskapi.core.errors import NotFound
from taskapi.models import Task


class ReadWriteLock:
    """Many concurrent readers or one writer. Writers wait for readers to drain."""

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False

    @contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            while self._writer:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            while self._writer or self._readers:
                self._cond.wait()
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


class TaskStore:
    """
    Task records keyed by id. IDs start at 1, grow monotonically and are never
    reused, even after delete. Listing order is unspecified.
    """

    def __init__(self) -> None:
        self._lock = ReadWriteLock()
        self._tasks: dict[int, Task] = {}
        self._next_id = 1

    def create(self, title: str) -> Task:
        with self._lock.write():
            task = Task(id=self._next_id, title=title, done=False)
            self._tasks[task.id] = task
            self._next_id += 1
            created = task.model_copy()
        app_logging.log_task_change("create", created.id)
        return created

    def get_by_id(self, task_id: int) -> Task:
        with self._lock.read():
            task = self._tasks.get(task_id)
            if task is None:
                raise NotFound()
            return task.model_copy()

    def get_all(self) -> list[Task]:
        with self._lock.read():
            return [task.model_copy() for task in self._tasks.values()]

    def get_by_status(self, done: bool) -> list[Task]:
        with self._lock.read():
            return [t.model_copy() for t in self._tasks.values() if t.done == done]

    def update(self, task_id: int, done: bool) -> None:
        with self._lock.write():
            task = self._tasks.get(task_id)
            if task is None:
                raise NotFound()
            task.done = done
        app_logging.log_task_change("update", task_id, done=done)

    def delete(self, task_id: int) -> None:
        with self._lock.write():
            if self._tasks.pop(task_id, None) is None:
                raise NotFound()
        app_logging.log_task_change("delete", task_id)

    def count(self) -> int:
        with self._lock.read():
            return len(self._tasks)
