from __future__ import annotations

import threading
from datetime import datetime, timedelta

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from siren.db.base import Base
from siren.services.code_store import CodeStore
from siren.services.device_registry import DeviceRegistry
from siren.services.pairing import ContactPairing
from siren.services.push_gateway import PushOutcome, PushResult
from siren.services.relationship_graph import RelationshipGraph

T0 = datetime(2026, 3, 14, 9, 0, 0)


class FrozenClock:
    def __init__(self, start: datetime = T0) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class FakeGateway:
    """Push gateway double that replays scripted results per token."""

    def __init__(self, script: dict | None = None) -> None:
        self.script = {token: list(results) for token, results in (script or {}).items()}
        self.calls: list[dict] = []
        self._lock = threading.Lock()

    def send(self, token, title, body, *, critical, data=None):
        with self._lock:
            self.calls.append({"token": token, "title": title, "body": body, "critical": critical, "data": data})
            queue = self.script.get(token)
            result = queue.pop(0) if queue else PushResult(PushOutcome.DELIVERED)
        if isinstance(result, Exception):
            raise result
        return result

    def calls_for(self, token: str) -> list[dict]:
        return [call for call in self.calls if call["token"] == token]


@pytest.fixture()
def engine():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    Base.metadata.create_all(engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(engine)
        engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False, future=True)


@pytest.fixture()
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture()
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture()
def graph(session_factory, clock) -> RelationshipGraph:
    return RelationshipGraph(session_factory, clock=clock)


@pytest.fixture()
def registry(session_factory, graph, clock) -> DeviceRegistry:
    return DeviceRegistry(session_factory, graph, clock=clock)


@pytest.fixture()
def code_store(session_factory, clock) -> CodeStore:
    return CodeStore(session_factory, clock=clock)


@pytest.fixture()
def pairing(session_factory, code_store, graph) -> ContactPairing:
    return ContactPairing(session_factory, code_store, graph)
