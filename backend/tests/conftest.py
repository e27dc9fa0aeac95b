"""
Pytest fixtures for test database, client, notifications and authentication.

Every test gets its own SQLite file built through the production engine
factory, so writers serialize exactly like they do in development. Redis is
switched off and notifications are captured in memory.
"""

import os

os.environ["ENVIRONMENT"] = "testing"
os.environ["REDIS_ENABLED"] = "false"
os.environ["NOTIFICATIONS_ENABLED"] = "true"
os.environ["EMAIL_BACKEND"] = "log"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"

from typing import AsyncGenerator  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402

from ticketbooth.core.security import Caller, Role, create_caller_token, hash_password  # noqa: E402
from ticketbooth.db.session import create_engine, create_session_factory, get_db, get_read_db, init_models  # noqa: E402
from ticketbooth.main import app  # noqa: E402
from ticketbooth.models import Event, User  # noqa: E402
from ticketbooth.services import allocation_service, waiting_list  # noqa: E402
from ticketbooth.services.notification_service import (  # noqa: E402
    EmailSender,
    NotificationService,
    get_notification_service,
)

TEST_PASSWORD = "testpassword123"
# Hashed once and shared by every fixture user
TEST_PASSWORD_HASH = hash_password(TEST_PASSWORD)


class RecordingSender(EmailSender):
    """Keeps every message instead of sending it."""

    def __init__(self):
        self.sent: list[dict] = []

    async def send(self, to: str, subject: str, body: str) -> None:
        self.sent.append({"to": to, "subject": subject, "body": body})

    def subjects_for(self, user_id: int) -> list[str]:
        return [m["subject"] for m in self.sent if m["to"] == str(user_id)]


class Allocator:
    """Runs engine operations the way a request does: one fresh session each."""

    def __init__(self, session_factory, notifier: NotificationService):
        self.session_factory = session_factory
        self.notifier = notifier

    async def initialize(self, caller: Caller, total_tickets, name: str = "Launch Party"):
        async with self.session_factory() as db:
            return await allocation_service.initialize_event(db, caller, total_tickets, name, self.notifier)

    async def book(self, caller: Caller, event_id: int):
        async with self.session_factory() as db:
            return await allocation_service.book(db, caller, event_id, self.notifier)

    async def cancel(self, caller: Caller, event_id: int):
        async with self.session_factory() as db:
            return await allocation_service.cancel(db, caller, event_id, self.notifier)

    async def status(self, caller: Caller, event_id: int):
        async with self.session_factory() as db:
            return await allocation_service.get_status(db, caller, event_id)

    async def clear_waiting_list(self, caller: Caller, event_id: int):
        async with self.session_factory() as db:
            return await allocation_service.clear_waiting_list(db, caller, event_id, self.notifier)

    async def event(self, event_id: int) -> Event:
        async with self.session_factory() as db:
            return await db.get(Event, event_id)

    async def waiting_users(self, event_id: int) -> list[int]:
        async with self.session_factory() as db:
            return [entry.user_id for entry in await waiting_list.list_by_event(db, event_id)]


def assert_balanced(event: Event) -> None:
    assert event.available_tickets >= 0
    assert event.booked_tickets >= 0
    assert event.available_tickets + event.booked_tickets == event.total_tickets


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'ticketbooth.db'}")
    await init_models(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture
def read_session_factory(engine):
    return create_session_factory(engine, read_only=True)


@pytest_asyncio.fixture
async def db_session(session_factory):
    """A session for store-level tests. Keep engine calls on their own sessions."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def sender() -> RecordingSender:
    return RecordingSender()


@pytest.fixture
def notifier(sender: RecordingSender) -> NotificationService:
    # Without a resolver the address is the user id itself
    return NotificationService(sender=sender)


@pytest.fixture
def allocator(session_factory, notifier) -> Allocator:
    return Allocator(session_factory, notifier)


@pytest.fixture
def make_user(session_factory):
    async def _make_user(name: str, role: Role = Role.USER) -> User:
        async with session_factory() as session:
            user = User(
                name=name,
                email=f"{name.lower()}@example.com",
                hashed_password=TEST_PASSWORD_HASH,
                role=role.value,
            )
            session.add(user)
            await session.commit()
            return user

    return _make_user


@pytest_asyncio.fixture
async def admin_user(make_user) -> User:
    return await make_user("Admin", Role.ADMIN)


@pytest_asyncio.fixture
async def users(make_user) -> list[User]:
    """Four plain users: A, B, C and D."""
    return [await make_user(f"User{label}") for label in "ABCD"]


@pytest.fixture
def admin(admin_user: User) -> Caller:
    return Caller(id=admin_user.id, role=Role.ADMIN, email=admin_user.email)


@pytest.fixture
def callers(users: list[User]) -> list[Caller]:
    return [Caller(id=u.id, role=Role.USER, email=u.email) for u in users]


@pytest.fixture
def make_event(session_factory, admin_user: User):
    async def _make_event(total_tickets: int, name: str = "Test Concert") -> Event:
        async with session_factory() as session:
            event = Event(
                owner_id=admin_user.id,
                name=name,
                total_tickets=total_tickets,
                available_tickets=total_tickets,
                booked_tickets=0,
            )
            session.add(event)
            await session.commit()
            return event

    return _make_event


@pytest_asyncio.fixture
async def client(session_factory, read_session_factory, notifier) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client with a fresh session per request and in-memory notifications."""

    async def override_get_db():
        async with session_factory() as session:
            yield session

    async def override_get_read_db():
        async with read_session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_read_db] = override_get_read_db
    app.dependency_overrides[get_notification_service] = lambda: notifier

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    await notifier.drain()
    app.dependency_overrides.clear()


def bearer(user: User) -> dict:
    token = create_caller_token(user.id, Role(user.role), user.email)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin_headers(admin_user: User) -> dict:
    return bearer(admin_user)


@pytest.fixture
def user_headers(users: list[User]) -> list[dict]:
    return [bearer(u) for u in users]
