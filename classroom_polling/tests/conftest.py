import pytest
from classroom_polling.core.security import Identity
from classroom_polling.crud.room import crud_room
from classroom_polling.db.base import Base
from classroom_polling.db.core import build_engine, build_session_factory
from classroom_polling.models import User, UserRole
from classroom_polling.realtime.coordinator import RoomCoordinator
from classroom_polling.realtime.groups import BroadcastGroups

ROOM_CODE = "482913"


class FakeConnection:
    """Stands in for a socket: records every emitted event."""

    def __init__(self, user: User):
        self.identity = Identity(id=user.id, username=user.username, role=user.role)
        self.sent = []

    async def emit(self, event: str, payload: dict) -> None:
        self.sent.append((event, payload))

    def received(self, event: str):
        return [payload for name, payload in self.sent if name == event]

    def last(self, event: str):
        payloads = self.received(event)
        assert payloads, f"no {event!r} received, got {self.sent}"
        return payloads[-1]

    def __repr__(self):
        return f"FakeConnection({self.identity.username})"


@pytest.fixture
async def db_engine(tmp_path):
    """Create a database engine for the tests.

    Function-scoped to ensure it's created in the same event loop as the test.
    """
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'polling_test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)  # Clean slate
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def db_session_factory(db_engine):
    """Factory to create multiple sessions for concurrent tests."""
    return build_session_factory(db_engine)


@pytest.fixture
async def db_session(db_session_factory):
    async with db_session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
async def users(db_session_factory):
    async with db_session_factory() as session:
        seeded = {
            "teacher": User(username="T1", role=UserRole.TEACHER),
            "other_teacher": User(username="T2", role=UserRole.TEACHER),
            "student": User(username="S1", role=UserRole.STUDENT),
            "student2": User(username="S2", role=UserRole.STUDENT),
            "student3": User(username="S3", role=UserRole.STUDENT),
        }
        session.add_all(seeded.values())
        await session.commit()
    return seeded


@pytest.fixture
def groups():
    return BroadcastGroups()


@pytest.fixture
def coordinator(groups, db_session_factory):
    return RoomCoordinator(groups, db_session_factory)


@pytest.fixture
def connect(users):
    """connect("student") -> FakeConnection for that seeded user."""
    def _connect(name: str) -> FakeConnection:
        return FakeConnection(users[name])
    return _connect


@pytest.fixture
async def room(db_session_factory, users):
    async with db_session_factory() as session:
        return await crud_room.create_room(
            session, title="Algebra 101", teacher_id=users["teacher"].id, room_code=ROOM_CODE)


@pytest.fixture
def ghost():
    """A verified connection whose user no longer exists in the store."""
    return FakeConnection(User(id="ghost-user", username="ghost", role=UserRole.STUDENT))
