"""Timer-driven producer of synthetic tasks."""

from __future__ import annotations

import asyncio
import contextlib
import logging

from taskboard.storage.base import TaskStore
from taskboard.storage.models import Task, TaskCandidate

logger = logging.getLogger(__name__)


def generated_text(task_id: str) -> str:
    return f"task {task_id}"


class PeriodicGenerator:
    """Create one task every `interval_s` seconds through the regular create path.

    A failing tick is logged and the schedule carries on.
    """

    def __init__(self, store: TaskStore, *, interval_s: float) -> None:
        if interval_s <= 0:
            raise ValueError("interval_s must be positive")
        self.store = store
        self.interval_s = interval_s
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def tick(self) -> Task:
        task = self.store.create(TaskCandidate(), text_factory=generated_text)
        logger.info("generator event=tick task_id=%s text=%r", task.id, task.text)
        return task

    async def run(self) -> None:
        while True:
            await asyncio.sleep(self.interval_s)
            try:
                self.tick()
            except Exception:
                logger.exception("generator event=tick_failed")

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self.run())
        logger.info("generator event=start interval_s=%s", self.interval_s)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None
        logger.info("generator event=stop")
