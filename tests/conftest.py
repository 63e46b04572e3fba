from __future__ import annotations

import os
from collections.abc import Iterator
from typing import Callable

import pytest
from sqlalchemy.engine import Engine

from care_connections.config import Settings
from care_connections.db.engine import create_engine, create_session_factory
from care_connections.db.schema import Base, DbConnection, DbConnectionRequest, create_all
from care_connections.identity import InMemoryUserDirectory
from care_connections.models.user import User, UserRole, UserStatus
from care_connections.notifications import NotificationEvent
from care_connections.repositories import ConnectionRepository, ConnectionRequestRepository
from care_connections.workflow import ConnectionServices, create_connection_services


class RecordingDispatcher:
    """Collects dispatched events for assertions."""

    def __init__(self) -> None:
        self.events: list[NotificationEvent] = []

    def dispatch(self, event: NotificationEvent) -> None:
        self.events.append(event)

    def types(self) -> list[str]:
        return [event.event_type.value for event in self.events]


class FailingDispatcher:
    def dispatch(self, event: NotificationEvent) -> None:
        raise ConnectionError("mail server unavailable")


@pytest.fixture(scope="session")
def postgres_url() -> str | None:
    """Return the Postgres test URL if provided via env."""
    return os.getenv("POSTGRES_TEST_URL") or os.getenv("DATABASE_URL")


@pytest.fixture
def engine(postgres_url: str | None) -> Iterator[Engine]:
    """Yield an engine targeting Postgres when configured; otherwise SQLite in-memory."""
    engine = create_engine(postgres_url) if postgres_url else create_engine()
    create_all(engine)
    try:
        yield engine
    finally:
        with engine.begin() as connection:
            if engine.dialect.name == "sqlite":
                Base.metadata.drop_all(bind=connection)
            else:
                connection.execute(DbConnectionRequest.__table__.delete())
                connection.execute(DbConnection.__table__.delete())


@pytest.fixture
def session_factory(engine: Engine):
    return create_session_factory(engine)


@pytest.fixture
def connection_repository(session_factory) -> ConnectionRepository:
    return ConnectionRepository(session_factory)


@pytest.fixture
def request_repository(session_factory) -> ConnectionRequestRepository:
    return ConnectionRequestRepository(session_factory)


@pytest.fixture
def user_factory() -> Callable[..., User]:
    def _factory(
        user_id: str,
        role: UserRole | str,
        *,
        status: UserStatus | str = UserStatus.ACTIVE,
        guardian_id: str | None = None,
        name: str | None = None,
    ) -> User:
        return User(
            id=user_id,
            role=UserRole(role),
            status=UserStatus(status),
            guardian_id=guardian_id,
            name=name,
        )

    return _factory


@pytest.fixture
def users(user_factory) -> InMemoryUserDirectory:
    """A small family/therapist roster shared by the workflow tests."""
    return InMemoryUserDirectory(
        [
            user_factory("admin", UserRole.ADMIN),
            user_factory("therapist", UserRole.THERAPIST),
            user_factory("therapist-2", UserRole.THERAPIST),
            user_factory("therapist-inactive", UserRole.THERAPIST, status=UserStatus.INACTIVE),
            user_factory("guardian", UserRole.GUARDIAN),
            user_factory("guardian-2", UserRole.GUARDIAN),
            user_factory("guardian-3", UserRole.GUARDIAN),
            user_factory("guardian-pending", UserRole.GUARDIAN, status=UserStatus.PENDING),
            user_factory("child", UserRole.CHILD, guardian_id="guardian", name="Sam"),
            user_factory("child-2", UserRole.CHILD, guardian_id="guardian-2", name="Alex"),
        ]
    )


@pytest.fixture
def dispatcher() -> RecordingDispatcher:
    return RecordingDispatcher()


@pytest.fixture
def failing_dispatcher() -> FailingDispatcher:
    return FailingDispatcher()


@pytest.fixture
def settings() -> Settings:
    return Settings(_env_file=None)


@pytest.fixture
def services(session_factory, users, dispatcher, settings) -> ConnectionServices:
    return create_connection_services(
        session_factory, users, dispatcher=dispatcher, settings=settings
    )


@pytest.fixture
def workflow(services: ConnectionServices):
    return services.requests


@pytest.fixture
def manager(services: ConnectionServices):
    return services.connections
