"""Publish/subscribe fan-out of task mutations.

Delivery is best-effort: a subscriber that is closed, slow, or raising never
blocks or fails the mutation that produced the event.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import Any, Protocol

from taskboard.storage.models import TaskEvent

logger = logging.getLogger(__name__)


class Subscriber(Protocol):
    @property
    def ready(self) -> bool: ...

    def send(self, event: TaskEvent) -> None: ...


class SubscriberOverflowError(RuntimeError):
    """Raised by `QueueSubscriber.receive` once its queue has overflowed."""


class QueueSubscriber:
    """Subscriber feeding a bounded asyncio queue owned by one event loop.

    `send` may be called from any thread. Events are handed to the loop with
    `call_soon_threadsafe`, which keeps them in publish order. A consumer that
    falls `maxsize` events behind is cut off instead of growing the queue.
    """

    def __init__(
        self,
        loop: asyncio.AbstractEventLoop | None = None,
        *,
        maxsize: int = 1000,
    ) -> None:
        self._loop = loop if loop is not None else asyncio.get_running_loop()
        self.queue: asyncio.Queue[dict[str, Any]] = asyncio.Queue(maxsize=maxsize)
        self._closed = False
        self._overflowed = False

    @property
    def ready(self) -> bool:
        return not self._closed and not self._overflowed and not self._loop.is_closed()

    @property
    def overflowed(self) -> bool:
        return self._overflowed

    def send(self, event: TaskEvent) -> None:
        message = event.model_dump(mode="json")
        try:
            self._loop.call_soon_threadsafe(self._enqueue, message)
        except RuntimeError:
            # Loop shut down between the ready check and the hand-off.
            self._closed = True
            raise

    def _enqueue(self, message: dict[str, Any]) -> None:
        if self._overflowed:
            return
        try:
            self.queue.put_nowait(message)
        except asyncio.QueueFull:
            self._overflowed = True
            logger.warning("broadcast event=overflow queue_size=%d", self.queue.maxsize)

    async def receive(self) -> dict[str, Any]:
        # The queue only overflows while full, so a waiting get() never misses it.
        if self._overflowed:
            raise SubscriberOverflowError(
                f"subscriber fell {self.queue.maxsize} events behind"
            )
        return await self.queue.get()

    def close(self) -> None:
        self._closed = True


class Broadcaster:
    """Registry of subscribers plus fire-and-forget publish."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._subscribers: list[Subscriber] = []

    def __len__(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def subscribe(self, subscriber: Subscriber) -> None:
        with self._lock:
            if subscriber not in self._subscribers:
                self._subscribers.append(subscriber)
        logger.info("broadcast event=subscribe subscribers=%d", len(self))

    def unsubscribe(self, subscriber: Subscriber) -> None:
        with self._lock:
            if subscriber in self._subscribers:
                self._subscribers.remove(subscriber)
        logger.info("broadcast event=unsubscribe subscribers=%d", len(self))

    def publish(self, event: TaskEvent) -> int:
        """Send `event` to every ready subscriber and return how many got it."""
        with self._lock:
            targets = list(self._subscribers)

        delivered = 0
        for subscriber in targets:
            if not subscriber.ready:
                continue
            try:
                subscriber.send(event)
            except Exception as exc:  # noqa: BLE001
                logger.warning(
                    "broadcast event=delivery_failed kind=%s task_id=%s reason=%s",
                    event.event,
                    event.payload.task.id,
                    exc,
                )
                continue
            delivered += 1
        return delivered
