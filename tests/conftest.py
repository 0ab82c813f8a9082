import os
from datetime import datetime, timedelta

# cheap hashes, no database file during tests
os.environ.setdefault("LEGION_BCRYPT_ROUNDS", "4")
os.environ.setdefault("LEGION_STORAGE_BACKEND", "memory")
os.environ.setdefault("LEGION_SEED_DEFAULT_BOSSES", "false")

import pytest
from fastapi.testclient import TestClient

import schemas
from services import ActivityLog, BossService, MemberService, NotificationBoard
from storage import MemoryStorage

LEADER_HEADERS = {"Authorization": 'Bearer {"is_leader": true, "name": "Boss Lady"}'}


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start=datetime(2025, 3, 1, 20, 0, 0)):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def activity_log(storage, clock):
    return ActivityLog(storage, clock)


@pytest.fixture
def boss_service(storage, activity_log, clock):
    return BossService(storage, activity_log, clock)


@pytest.fixture
def member_service(storage, activity_log, clock):
    return MemberService(storage, activity_log, clock)


@pytest.fixture
def notification_board(storage, clock):
    return NotificationBoard(storage, clock)


@pytest.fixture
def boss(boss_service):
    return boss_service.create(
        schemas.BossCreate(name="LYTHEA", level=93, location="MAP 18", respawn_time_hours=2)
    )


@pytest.fixture
def client(storage, clock):
    from main import app, get_clock, get_storage

    app.dependency_overrides[get_storage] = lambda: storage
    app.dependency_overrides[get_clock] = lambda: clock
    yield TestClient(app)
    app.dependency_overrides.clear()
