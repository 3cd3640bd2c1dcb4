"""Storage interface for the task board."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from typing import Protocol

from taskboard.storage.models import Task, TaskCandidate, TaskListing


class TaskStore(Protocol):
    @property
    def last_updated(self) -> datetime: ...

    def list(self, text: str | None = None, page: int = 1) -> TaskListing: ...

    def get(self, task_id: str) -> Task: ...

    def create(
        self,
        candidate: TaskCandidate,
        *,
        text_factory: Callable[[str], str] | None = None,
    ) -> Task: ...

    def update(
        self,
        task_id: str,
        candidate: TaskCandidate,
        *,
        version: int | None = None,
    ) -> Task: ...

    def delete(self, task_id: str) -> Task | None: ...

    def is_fresh(self, since: datetime) -> bool: ...
