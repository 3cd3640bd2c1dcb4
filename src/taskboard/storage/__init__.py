"""Task store backends, models, and errors."""

from taskboard.storage.base import TaskStore
from taskboard.storage.errors import (
    IdentityMismatchError,
    TaskNotFoundError,
    TaskStoreError,
    TaskValidationError,
    VersionConflictError,
)
from taskboard.storage.memory import InMemoryTaskStore
from taskboard.storage.models import Task, TaskCandidate, TaskEvent, TaskListing

__all__ = [
    "IdentityMismatchError",
    "InMemoryTaskStore",
    "Task",
    "TaskCandidate",
    "TaskEvent",
    "TaskListing",
    "TaskNotFoundError",
    "TaskStore",
    "TaskStoreError",
    "TaskValidationError",
    "VersionConflictError",
]
