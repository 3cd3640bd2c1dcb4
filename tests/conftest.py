from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from taskboard.api.main import create_app
from taskboard.config.settings import Settings
from taskboard.notifications import Broadcaster
from taskboard.storage.memory import InMemoryTaskStore

from .fakes import ManualClock


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def broadcaster() -> Broadcaster:
    return Broadcaster()


@pytest.fixture
def store(clock: ManualClock, broadcaster: Broadcaster) -> InMemoryTaskStore:
    return InMemoryTaskStore(clock=clock, broadcaster=broadcaster)


@pytest.fixture
def settings() -> Settings:
    return Settings(generator_enabled=False, seed_tasks=0)


@pytest.fixture
def client(
    store: InMemoryTaskStore,
    broadcaster: Broadcaster,
    settings: Settings,
) -> TestClient:
    app = create_app(store=store, broadcaster=broadcaster, settings_override=settings)
    with TestClient(app) as test_client:
        yield test_client
