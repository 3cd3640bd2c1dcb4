from __future__ import annotations

import pytest

from taskboard.config.settings import Settings


def test_settings_defaults() -> None:
    settings = Settings(_env_file=None)

    assert settings.app_name == "taskboard"
    assert settings.port == 3000
    assert settings.seed_tasks == 3
    assert settings.generator_enabled is True
    assert settings.generator_interval_s == 150.0
    assert settings.request_delay_s == 0.0
    assert settings.cors_allow_origins == ["*"]
    assert settings.ws_queue_size == 1000


def test_settings_read_prefixed_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TASKBOARD_PORT", "8080")
    monkeypatch.setenv("TASKBOARD_GENERATOR_ENABLED", "false")
    monkeypatch.setenv("TASKBOARD_GENERATOR_INTERVAL_S", "2.5")
    monkeypatch.setenv("TASKBOARD_CORS_ALLOW_ORIGINS", '["http://localhost:8100"]')

    settings = Settings(_env_file=None)

    assert settings.port == 8080
    assert settings.generator_enabled is False
    assert settings.generator_interval_s == 2.5
    assert settings.cors_allow_origins == ["http://localhost:8100"]


def test_settings_reject_non_positive_generator_interval(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setenv("TASKBOARD_GENERATOR_INTERVAL_S", "0")

    with pytest.raises(ValueError):
        Settings(_env_file=None)


def test_settings_reject_empty_websocket_queue(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TASKBOARD_WS_QUEUE_SIZE", "0")

    with pytest.raises(ValueError):
        Settings(_env_file=None)
