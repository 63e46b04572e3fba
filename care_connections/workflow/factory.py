"""Factory helpers for constructing the workflow services."""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.orm import Session, sessionmaker

from care_connections.config import Settings
from care_connections.eligibility import EligibilityChecker
from care_connections.identity import UserDirectory
from care_connections.notifications import LoggingDispatcher, NotificationDispatcher
from care_connections.permissions import PermissionGate
from care_connections.repositories.connection_repository import ConnectionRepository
from care_connections.repositories.request_repository import ConnectionRequestRepository

from .connection_manager import ConnectionManager
from .request_workflow import RequestWorkflow


@dataclass(frozen=True)
class ConnectionServices:
    """The two entry points a web layer needs, sharing one gate and dispatcher."""

    requests: RequestWorkflow
    connections: ConnectionManager


def create_connection_services(
    session_factory: sessionmaker[Session],
    users: UserDirectory,
    *,
    dispatcher: NotificationDispatcher | None = None,
    settings: Settings | None = None,
) -> ConnectionServices:
    """Build the request workflow and connection manager over shared repositories."""
    connection_repository = ConnectionRepository(session_factory)
    request_repository = ConnectionRequestRepository(session_factory)
    gate = PermissionGate()
    eligibility = EligibilityChecker()
    dispatcher = dispatcher or LoggingDispatcher()

    return ConnectionServices(
        requests=RequestWorkflow(
            request_repository,
            connection_repository,
            users,
            gate=gate,
            eligibility=eligibility,
            dispatcher=dispatcher,
            settings=settings,
        ),
        connections=ConnectionManager(
            connection_repository,
            users,
            gate=gate,
            eligibility=eligibility,
            dispatcher=dispatcher,
        ),
    )


__all__ = ["ConnectionServices", "create_connection_services"]
