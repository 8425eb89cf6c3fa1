"""Shared test fixtures."""
import threading
from datetime import datetime, timedelta

import pytest
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

# Import all models so SQLModel.metadata knows about them
from fieldsync.models.history import SyncHistoryEntry  # noqa: F401
from fieldsync.models.tracking import SyncRecord  # noqa: F401
from fieldsync.tracking.history import SyncHistoryLogger
from fieldsync.tracking.service import SyncTrackingService
from fieldsync.tracking.store import SyncStateStore


class SteppingClock:
    """Deterministic clock: every call returns a time one second later."""

    def __init__(self, start: datetime = datetime(2025, 1, 15, 9, 0), step: timedelta = timedelta(seconds=1)):
        self.current = start
        self.step = step
        self._lock = threading.Lock()

    def __call__(self) -> datetime:
        with self._lock:
            self.current += self.step
            return self.current


@pytest.fixture(name="engine")
def engine_fixture():
    """In-memory SQLite engine. Tables recreated fresh for each test."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)


@pytest.fixture(name="test_session")
def test_session_fixture(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture(name="clock")
def clock_fixture() -> SteppingClock:
    return SteppingClock()


@pytest.fixture(name="store")
def store_fixture(engine) -> SyncStateStore:
    return SyncStateStore(engine)


@pytest.fixture(name="tracker")
def tracker_fixture(store, clock) -> SyncTrackingService:
    return SyncTrackingService(store, clock=clock, strict_conflict_resolution=True)


@pytest.fixture(name="history")
def history_fixture(engine, clock) -> SyncHistoryLogger:
    return SyncHistoryLogger(engine, clock=clock)
