"""FastAPI app entrypoint for the task board.

Terms used in this file:
- Issue body: error payload shape `{"issue": [{"error": "..."}]}` returned by
  every failing route (`"warning"` instead of `"error"` for a missing task).
- Version token: integer sent in the `ETag` request header on PUT; compared
  with the stored priority to reject stale writes.
- Freshness check: `If-Modified-Since` on GET /task answered with 304 when
  nothing changed since that instant.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Sequence
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from email.utils import format_datetime, parsedate_to_datetime
from typing import Any, Literal

import uvicorn
from fastapi import Body, FastAPI, Header, Query, Request, Response, WebSocket
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from taskboard.config.settings import Settings, get_settings
from taskboard.generator import PeriodicGenerator
from taskboard.logging_setup import setup_logging
from taskboard.notifications import Broadcaster, QueueSubscriber, SubscriberOverflowError
from taskboard.storage.base import TaskStore
from taskboard.storage.errors import (
    IdentityMismatchError,
    TaskNotFoundError,
    TaskValidationError,
    VersionConflictError,
)
from taskboard.storage.memory import InMemoryTaskStore
from taskboard.storage.models import Task, TaskCandidate

logger = logging.getLogger(__name__)


class IssueError(Exception):
    """Route failure rendered as an issue body with the given status."""

    def __init__(
        self,
        status_code: int,
        message: str,
        *,
        severity: Literal["error", "warning"] = "error",
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.severity = severity


def _issue_body(message: str, severity: str = "error") -> dict[str, Any]:
    return {"issue": [{severity: message}]}


def create_app(
    *,
    store: TaskStore | None = None,
    broadcaster: Broadcaster | None = None,
    settings_override: Settings | None = None,
) -> FastAPI:
    settings = settings_override if settings_override is not None else get_settings()
    # Broadcaster defines __len__, so an empty one is falsy; test for None explicitly.
    if broadcaster is None:
        broadcaster = Broadcaster()
    if store is None:
        store = InMemoryTaskStore(broadcaster=broadcaster, seed_tasks=settings.seed_tasks)
    generator = PeriodicGenerator(store, interval_s=settings.generator_interval_s)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if settings.generator_enabled:
            app.state.generator.start()
        try:
            yield
        finally:
            await app.state.generator.stop()

    app = FastAPI(title=settings.app_name, lifespan=lifespan)
    # Shared objects live in app.state so route handlers can reuse them.
    app.state.settings = settings
    app.state.store = store
    app.state.broadcaster = broadcaster
    app.state.generator = generator

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["Last-Modified", "ETag"],
    )

    @app.middleware("http")
    async def access_log(request: Request, call_next):
        started = time.perf_counter()
        if settings.request_delay_s > 0:
            await asyncio.sleep(settings.request_delay_s)
        try:
            response = await call_next(request)
        except Exception:
            # The catch-all handler renders the 500 outside this middleware.
            _log_request(request, 500, started)
            raise
        _log_request(request, response.status_code, started)
        return response

    @app.exception_handler(IssueError)
    async def issue_error_handler(_: Request, exc: IssueError) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content=_issue_body(exc.message, exc.severity),
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(
        _: Request, exc: RequestValidationError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=400,
            content=_issue_body(_validation_message(exc.errors())),
        )

    @app.exception_handler(Exception)
    async def unexpected_error_handler(_: Request, exc: Exception) -> JSONResponse:
        logger.exception("request failed unexpectedly")
        return JSONResponse(
            status_code=500,
            content=_issue_body(str(exc) or "Unexpected error"),
        )

    def _store(request: Request) -> TaskStore:
        return request.app.state.store

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok", "service": settings.app_name}

    @app.get("/task")
    def list_tasks(
        request: Request,
        text: str | None = Query(default=None),
        page: str | None = Query(default=None),
        if_modified_since: str | None = Header(default=None),
    ) -> Response:
        task_store = _store(request)
        since = _parse_http_date(if_modified_since)
        if since is not None and task_store.is_fresh(since):
            return Response(status_code=304)

        listing = task_store.list(text=text, page=_parse_page(page))
        return JSONResponse(
            status_code=200,
            content=[task.model_dump(mode="json") for task in listing.items],
            headers={"Last-Modified": _format_http_date(listing.last_updated)},
        )

    @app.get("/task/{task_id}", response_model=Task)
    def get_task(task_id: str, request: Request) -> Task:
        try:
            return _store(request).get(task_id)
        except TaskNotFoundError as exc:
            raise IssueError(404, str(exc), severity="warning") from exc

    @app.post("/task", response_model=Task, status_code=201)
    def create_task(
        request: Request,
        payload: TaskCandidate | None = Body(default=None),
    ) -> Task:
        if payload is None:
            payload = TaskCandidate()
        try:
            return _store(request).create(payload)
        except TaskValidationError as exc:
            raise IssueError(400, str(exc)) from exc

    @app.put("/task/{task_id}", response_model=Task)
    def update_task(
        task_id: str,
        request: Request,
        response: Response,
        payload: TaskCandidate | None = Body(default=None),
        etag: str | None = Header(default=None),
    ) -> Task:
        if payload is None:
            payload = TaskCandidate()
        try:
            task = _store(request).update(task_id, payload, version=_parse_version(etag))
        except VersionConflictError as exc:
            raise IssueError(409, str(exc)) from exc
        except (IdentityMismatchError, TaskNotFoundError, TaskValidationError) as exc:
            raise IssueError(400, str(exc)) from exc
        if not payload.id:
            # Update without identity went through the create path.
            response.status_code = 201
        return task

    @app.delete("/task/{task_id}", status_code=204)
    def delete_task(task_id: str, request: Request) -> Response:
        _store(request).delete(task_id)
        return Response(status_code=204)

    @app.websocket("/ws")
    async def task_events(websocket: WebSocket) -> None:
        channel: Broadcaster = websocket.app.state.broadcaster
        subscriber = QueueSubscriber(maxsize=settings.ws_queue_size)
        # Register before accepting so no event after the handshake is missed.
        channel.subscribe(subscriber)
        try:
            await websocket.accept()
            await _pump_events(websocket, subscriber)
        finally:
            subscriber.close()
            channel.unsubscribe(subscriber)

    return app


async def _pump_events(websocket: WebSocket, subscriber: QueueSubscriber) -> None:
    """Forward queued events until the client disconnects or a send fails."""

    async def forward() -> None:
        while True:
            try:
                message = await subscriber.receive()
            except SubscriberOverflowError as exc:
                logger.warning("websocket event=overflow reason=%s", exc)
                # 1013: try again later; the client reloads the list on reconnect.
                await websocket.close(code=1013)
                return
            await websocket.send_json(message)

    async def watch_disconnect() -> None:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                return

    workers = [
        asyncio.create_task(forward()),
        asyncio.create_task(watch_disconnect()),
    ]
    try:
        await asyncio.wait(workers, return_when=asyncio.FIRST_COMPLETED)
    finally:
        for worker in workers:
            worker.cancel()
        outcomes = await asyncio.gather(*workers, return_exceptions=True)
    for outcome in outcomes:
        if isinstance(outcome, Exception):
            logger.info("websocket event=closed reason=%s", outcome)


def _log_request(request: Request, status_code: int, started: float) -> None:
    elapsed_ms = (time.perf_counter() - started) * 1000
    logger.info(
        "%s %s %s - %dms",
        request.method,
        request.url.path,
        status_code,
        elapsed_ms,
    )


def _validation_message(errors: Sequence[Any]) -> str:
    """Flatten pydantic request errors into a single issue message."""
    for error in errors:
        if error.get("type") == "json_invalid":
            return "Request body is not valid JSON"
        loc = error.get("loc", ())
        if loc and loc[-1] == "text":
            return "Text is missing"
    if not errors:
        return "Invalid request"
    first = errors[0]
    field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "Invalid request")
    return f"{field}: {message}" if field else message


def _parse_page(raw: str | None) -> int:
    """Page number as sent by the client; anything but a positive integer is page 1."""
    try:
        page = int(raw) if raw is not None else 1
    except ValueError:
        return 1
    return page if page >= 1 else 1


def _parse_http_date(raw: str | None) -> datetime | None:
    if not raw:
        return None
    try:
        return parsedate_to_datetime(raw)
    except (TypeError, ValueError):
        logger.debug("ignoring unparseable If-Modified-Since=%r", raw)
        return None


def _format_http_date(value: datetime) -> str:
    return format_datetime(value.astimezone(UTC), usegmt=True)


def _parse_version(raw: str | None) -> int | None:
    """Read an integer version token from an ETag value such as 3, "3" or W/"3"."""
    if raw is None:
        return None
    value = raw.strip()
    if value.startswith("W/"):
        value = value[2:]
    value = value.strip('"')
    try:
        return int(value)
    except ValueError:
        return None


app = create_app()


def run() -> None:
    """Console entry point: configure logging and serve with uvicorn."""
    settings = get_settings()
    setup_logging(settings.log_level)
    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )
