"""Pydantic models shared by the API, the store, and the notification channel.

Terms used in this file:
- Candidate: the client-supplied body of a create/update request. Every field
  is optional because the store, not pydantic, decides what is missing.
- Priority: the per-task version counter used to detect stale updates.
- Event: the envelope pushed to WebSocket subscribers after a mutation.
"""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

# Mutation kinds broadcast to subscribers.
EventKind = Literal["created", "updated", "deleted"]


class Task(BaseModel):
    """Stored task record returned by the store and the API."""

    id: str
    text: str = Field(min_length=1)
    date: datetime
    # Version token; bumped on every accepted update.
    priority: int = Field(default=1, ge=1)


class TaskCandidate(BaseModel):
    """Request body for POST /task and PUT /task/{id}."""

    model_config = ConfigDict(extra="ignore")

    id: str | None = None
    text: str | None = None
    # Accepted for wire compatibility; the store always sets its own date.
    date: datetime | None = None
    priority: int | None = None


class TaskListing(BaseModel):
    """Result of a list query plus the freshness marker of the whole store."""

    items: list[Task] = Field(default_factory=list)
    page: int = 1
    last_updated: datetime


class TaskEventPayload(BaseModel):
    task: Task


class TaskEvent(BaseModel):
    """Envelope pushed to every subscriber: {"event": ..., "payload": {"task": ...}}."""

    event: EventKind
    payload: TaskEventPayload

    @classmethod
    def for_task(cls, event: EventKind, task: Task) -> TaskEvent:
        return cls(event=event, payload=TaskEventPayload(task=task.model_copy()))
