"""Error taxonomy raised by task store operations."""

from __future__ import annotations


class TaskStoreError(Exception):
    """Base class for recoverable store errors."""


class TaskValidationError(TaskStoreError, ValueError):
    """A required task field is missing or empty."""


class TaskNotFoundError(TaskStoreError, LookupError):
    def __init__(self, task_id: str) -> None:
        super().__init__(f"task with id {task_id} not found")
        self.task_id = task_id


class IdentityMismatchError(TaskStoreError, ValueError):
    def __init__(self, path_id: str, body_id: str) -> None:
        super().__init__("Param id and body id should be the same")
        self.path_id = path_id
        self.body_id = body_id


class VersionConflictError(TaskStoreError):
    """The caller's version token is older than the stored priority."""

    def __init__(self, task_id: str, *, expected: int, actual: int) -> None:
        super().__init__("Priority conflict")
        self.task_id = task_id
        self.expected = expected
        self.actual = actual
