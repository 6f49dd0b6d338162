"""
Shared fixtures for LabQueue Server tests

Every test gets its own SQLite database under tmp_path, a manual clock that
only moves when told to, and a notifier that records what it was asked to
send.
"""

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from managers.database_manager import DatabaseManager
from models.database import (
    QueueEntry, QueueEntryState, Resource, ResourceState,
    UsageSession, UsageSessionState
)
from clock import Clock
from notifier import Notifier
from lab_service import LabService


START_TIME = datetime(2025, 3, 3, 9, 0, 0, tzinfo=timezone.utc)


class ManualClock(Clock):
    """Clock that only advances when a test says so"""

    def __init__(self, start: datetime = START_TIME):
        self.current = start

    def Now(self) -> datetime:
        return self.current

    def Advance(self, seconds: float) -> datetime:
        self.current = self.current + timedelta(seconds=seconds)
        return self.current


class RecordingNotifier(Notifier):
    """Notifier that keeps every notice it receives"""

    def __init__(self):
        self.notices = []

    def Notify(self, student_id, kind, payload):
        self.notices.append((student_id, kind, dict(payload)))

    def StudentsNotified(self, kind):
        return [student_id for student_id, notice_kind, _ in self.notices if notice_kind == kind]


class FailingNotifier(Notifier):
    """Notifier whose delivery always fails"""

    def __init__(self):
        self.attempts = 0

    def Notify(self, student_id, kind, payload):
        self.attempts += 1
        raise RuntimeError("push gateway unavailable")


@pytest.fixture
def db_manager(tmp_path):
    """Database manager over a fresh SQLite file"""
    manager = DatabaseManager(str(tmp_path / "labqueue.db"))
    manager.InitializeDatabase()
    yield manager
    manager.Dispose()


@pytest.fixture
def db_session(db_manager):
    """A session for driving the engine modules directly"""
    session = db_manager.GetSession()
    yield session
    session.rollback()
    session.close()


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def service(db_manager, clock, notifier):
    return LabService(db_manager, clock=clock, notifier=notifier)


@pytest.fixture
def add_workstations(service):
    """Register workstations through the service; returns their IDs"""
    def add(count, prefix="PC"):
        return [
            service.RegisterResource(f"{prefix}-{number:02d}", "Room 204").resource_id
            for number in range(1, count + 1)
        ]
    return add


@pytest.fixture
def check_invariants(db_manager):
    """
    Assert the storage-wide invariants:
    - active positions are exactly 1..N
    - one active entry and one live session per student
    - held <=> one assigned entry, occupied <=> one live session
    """
    def check(session=None):
        own_session = session is None
        if own_session:
            session = db_manager.GetSession()
        else:
            session.flush()
        try:
            active = session.query(QueueEntry).filter(QueueEntry.state.in_(QueueEntryState.ACTIVE)).all()
            live = session.query(UsageSession).filter(UsageSession.state.in_(UsageSessionState.LIVE)).all()

            positions = sorted(entry.queue_position for entry in active)
            assert positions == list(range(1, len(active) + 1))

            assert len({entry.student_id for entry in active}) == len(active)
            assert len({usage.student_id for usage in live}) == len(live)

            for resource in session.query(Resource).all():
                holders = [
                    entry for entry in active
                    if entry.state == QueueEntryState.ASSIGNED and entry.assigned_resource_id == resource.resource_id
                ]
                occupants = [usage for usage in live if usage.resource_id == resource.resource_id]

                if resource.state == ResourceState.HELD:
                    assert len(holders) == 1 and not occupants
                elif resource.state == ResourceState.OCCUPIED:
                    assert len(occupants) == 1 and not holders
                else:
                    assert not holders and not occupants
        finally:
            if own_session:
                session.close()
    return check
