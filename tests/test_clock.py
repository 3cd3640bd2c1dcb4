from __future__ import annotations

from datetime import UTC, datetime, timedelta

from taskboard import clock as clock_module
from taskboard.clock import IdSequence, SystemClock


def test_system_clock_returns_utc() -> None:
    now = SystemClock().now()

    assert now.tzinfo is UTC


def test_system_clock_never_goes_backwards(monkeypatch) -> None:
    readings = iter(
        [
            datetime(2024, 5, 1, 12, 0, 5, tzinfo=UTC),
            datetime(2024, 5, 1, 12, 0, 1, tzinfo=UTC),
            datetime(2024, 5, 1, 12, 0, 9, tzinfo=UTC),
        ]
    )

    class FakeDatetime:
        @staticmethod
        def now(tz=None):
            return next(readings)

    monkeypatch.setattr(clock_module, "datetime", FakeDatetime)
    system_clock = SystemClock()

    first = system_clock.now()
    second = system_clock.now()
    third = system_clock.now()

    assert second == first
    assert third - first == timedelta(seconds=4)


def test_id_sequence_peek_does_not_consume() -> None:
    ids = IdSequence()

    assert ids.peek() == "0"
    assert ids.peek() == "0"
    assert ids.advance() == "0"
    assert ids.advance() == "1"
    assert ids.last == "1"
    assert ids.peek() == "2"


def test_id_sequence_resumes_after_given_last() -> None:
    ids = IdSequence(last=41)

    assert ids.advance() == "42"
