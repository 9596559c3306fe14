from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone
from pathlib import Path

import httpx
import pytest

from mission_clocks.db.database import create_db_engine, create_session_factory, init_db
from mission_clocks.db.storage import MissionStorage
from mission_clocks.triggers.emitter import TriggerEmitter
from mission_clocks.triggers.registry import SchedulerRegistry
from mission_clocks.triggers.store import TriggerStore

T0 = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)
CONTROL_URL = "http://mission-control.test/events"
COMMS_URL = "http://mission-comms.test/notify"


def at(seconds: float) -> datetime:
    return T0 + timedelta(seconds=seconds)


def iso(seconds: float) -> str:
    return at(seconds).isoformat().replace("+00:00", "Z")


class FakeClock:
    def __init__(self, now: datetime = T0) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)

    def set(self, seconds: float) -> None:
        self.now = at(seconds)


class SinkRecorder:
    """Records sink calls; responds with a per-URL status or raises a per-URL error."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, dict]] = []
        self.responses: dict[str, int | Exception] = {}

    def handler(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        self.calls.append((url, json.loads(request.content)))
        outcome = self.responses.get(url, 200)
        if isinstance(outcome, Exception):
            raise outcome
        return httpx.Response(outcome, json={"ok": outcome < 400})

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def to(self, url: str) -> list[dict]:
        return [payload for call_url, payload in self.calls if call_url == url]


@pytest.fixture
def session_factory(tmp_path: Path):
    engine = create_db_engine(f"sqlite:///{tmp_path / 'clocks.db'}")
    init_db(engine)
    yield create_session_factory(engine)
    engine.dispose()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sinks() -> SinkRecorder:
    return SinkRecorder()


@pytest.fixture
def emitter(sinks: SinkRecorder) -> TriggerEmitter:
    return TriggerEmitter(CONTROL_URL, COMMS_URL, timeout=1.0, transport=sinks.transport)


@pytest.fixture
def registry(session_factory, emitter: TriggerEmitter, clock: FakeClock) -> SchedulerRegistry:
    return SchedulerRegistry(session_factory, emitter, clock=clock)


@pytest.fixture
def store(session_factory) -> TriggerStore:
    return TriggerStore(MissionStorage(session_factory, "mission-1"))
