"""In-memory task store with optimistic concurrency and change notification."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

from taskboard.clock import Clock, IdSequence, SystemClock
from taskboard.storage.errors import (
    IdentityMismatchError,
    TaskNotFoundError,
    TaskValidationError,
    VersionConflictError,
)
from taskboard.storage.models import EventKind, Task, TaskCandidate, TaskEvent, TaskListing

if TYPE_CHECKING:
    from taskboard.notifications import Broadcaster

logger = logging.getLogger(__name__)


class InMemoryTaskStore:
    """Thread-safe ordered task collection.

    One lock serializes every operation, reads included. Events are published
    while the lock is held so subscribers observe mutations in commit order.
    """

    def __init__(
        self,
        *,
        clock: Clock | None = None,
        broadcaster: Broadcaster | None = None,
        seed_tasks: int = 0,
    ) -> None:
        self._clock = clock if clock is not None else SystemClock()
        self._broadcaster = broadcaster
        self._lock = threading.RLock()
        self._ids = IdSequence()
        self._tasks: list[Task] = []
        self._last_updated = self._clock.now()
        self._seed(seed_tasks)

    @property
    def last_updated(self) -> datetime:
        with self._lock:
            return self._last_updated

    def __len__(self) -> int:
        with self._lock:
            return len(self._tasks)

    def list(self, text: str | None = None, page: int = 1) -> TaskListing:
        """Return tasks containing `text`, newest first.

        `page` is echoed back only; the full filtered set is always returned.
        """
        with self._lock:
            matches = [task for task in self._tasks if not text or text in task.text]
            matches.sort(key=lambda task: task.date, reverse=True)
            return TaskListing(
                items=[task.model_copy() for task in matches],
                page=page,
                last_updated=self._last_updated,
            )

    def get(self, task_id: str) -> Task:
        with self._lock:
            index = self._index_of(task_id)
            if index is None:
                raise TaskNotFoundError(task_id)
            return self._tasks[index].model_copy()

    def create(
        self,
        candidate: TaskCandidate,
        *,
        text_factory: Callable[[str], str] | None = None,
    ) -> Task:
        """Validate and append a new task.

        When `text_factory` is given and the candidate carries no text, the
        text is derived from the id about to be assigned.
        """
        with self._lock:
            text = candidate.text
            if not text and text_factory is not None:
                text = text_factory(self._ids.peek())
            if not text:
                raise TaskValidationError("Text is missing")

            task = Task(
                id=self._ids.advance(),
                text=text,
                date=self._clock.now(),
                priority=1,
            )
            self._tasks.append(task)
            self._touch(task.date)
            logger.info("task_store event=created task_id=%s", task.id)
            self._publish("created", task)
            return task.model_copy()

    def update(
        self,
        task_id: str,
        candidate: TaskCandidate,
        *,
        version: int | None = None,
    ) -> Task:
        """Replace a stored task if the caller's version token is not stale.

        The token is `version` (the ETag header) or else the candidate's own
        priority. Only a token strictly lower than the stored priority is a
        conflict, so re-submitting the current priority is accepted.
        """
        # An empty id counts as no id at all.
        body_id = candidate.id or None
        if body_id is not None and body_id != task_id:
            raise IdentityMismatchError(task_id, body_id)

        if body_id is None:
            # A body without identity is a creation, not an update.
            return self.create(candidate)

        with self._lock:
            index = self._index_of(task_id)
            if index is None:
                raise TaskNotFoundError(task_id)
            current = self._tasks[index]

            token = version if version is not None else candidate.priority
            if token is not None and token < current.priority:
                logger.info(
                    "task_store event=conflict task_id=%s token=%s stored_priority=%s",
                    task_id,
                    token,
                    current.priority,
                )
                raise VersionConflictError(task_id, expected=current.priority, actual=token)

            if not candidate.text:
                raise TaskValidationError("Text is missing")

            base = candidate.priority if candidate.priority is not None else token
            updated = Task(
                id=task_id,
                text=candidate.text,
                date=self._clock.now(),
                priority=max(base or current.priority, current.priority) + 1,
            )
            self._tasks[index] = updated
            self._touch(updated.date)
            logger.info(
                "task_store event=updated task_id=%s priority=%s",
                task_id,
                updated.priority,
            )
            self._publish("updated", updated)
            return updated.model_copy()

    def delete(self, task_id: str) -> Task | None:
        """Remove a task; deleting an unknown id is a no-op."""
        with self._lock:
            index = self._index_of(task_id)
            if index is None:
                return None
            removed = self._tasks.pop(index)
            self._touch(self._clock.now())
            logger.info("task_store event=deleted task_id=%s", task_id)
            self._publish("deleted", removed)
            return removed

    def is_fresh(self, since: datetime) -> bool:
        """True when a client copy dated `since` is still current.

        Compared at whole-second precision, as HTTP dates carry no fraction.
        """
        if since.tzinfo is None:
            since = since.replace(tzinfo=UTC)
        with self._lock:
            return since >= self._last_updated.replace(microsecond=0)

    def _seed(self, count: int) -> None:
        base = self._clock.now()
        for offset in range(count):
            task_id = self._ids.advance()
            task = Task(
                id=task_id,
                text=f"task {task_id}",
                date=base + timedelta(milliseconds=offset),
                priority=1,
            )
            self._tasks.append(task)
            self._touch(task.date)
        if count:
            logger.info("task_store event=seeded count=%d last_id=%s", count, self._ids.last)

    def _index_of(self, task_id: str) -> int | None:
        for index, task in enumerate(self._tasks):
            if task.id == task_id:
                return index
        return None

    def _touch(self, when: datetime) -> None:
        if when > self._last_updated:
            self._last_updated = when

    def _publish(self, kind: EventKind, task: Task) -> None:
        if self._broadcaster is None:
            return
        self._broadcaster.publish(TaskEvent.for_task(kind, task))
