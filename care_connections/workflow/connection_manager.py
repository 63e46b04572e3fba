"""Admin-initiated connections, termination and connection queries."""

from __future__ import annotations

import logging

from care_connections.eligibility import EligibilityChecker
from care_connections.errors import (
    InactiveUserError,
    InvalidRoleError,
    NotFoundError,
    UnauthorizedError,
)
from care_connections.identity import UserDirectory
from care_connections.models.connection import (
    ClientType,
    Connection,
    ConnectionStatus,
    ConnectionType,
)
from care_connections.models.user import User, UserRole
from care_connections.notifications import (
    EventType,
    LoggingDispatcher,
    NotificationDispatcher,
    NotificationEvent,
    notify_safely,
)
from care_connections.permissions import PermissionGate
from care_connections.repositories.connection_repository import ConnectionRepository

logger = logging.getLogger(__name__)


class ConnectionManager:
    """Thin façade over the connection repository for admin and termination paths."""

    def __init__(
        self,
        connections: ConnectionRepository,
        users: UserDirectory,
        *,
        gate: PermissionGate | None = None,
        eligibility: EligibilityChecker | None = None,
        dispatcher: NotificationDispatcher | None = None,
    ):
        self._connections = connections
        self._users = users
        self._gate = gate or PermissionGate()
        self._eligibility = eligibility or EligibilityChecker()
        self._dispatcher = dispatcher or LoggingDispatcher()

    # ----------------------------------------------------------- Mutating ops
    def create_admin_connection(self, admin_id: str, therapist_id: str, client_id: str) -> Connection:
        """Directly connect a therapist and a guardian without a request.

        Admins only link guardians; guardians assign their own children.
        """
        admin = self._require_user(admin_id)
        if not self._gate.can_create_admin_connection(admin):
            if admin.role != UserRole.ADMIN:
                raise InvalidRoleError("User must have admin role.", user_id=admin.id, role=admin.role.value)
            raise InactiveUserError(user_id=admin.id, status=admin.status.value)

        therapist = self._eligibility.validate_therapist(self._require_user(therapist_id))
        client = self._require_user(client_id)
        if client.role == UserRole.CHILD:
            raise InvalidRoleError(
                "Admins can only create connections with guardians. "
                "Guardians are responsible for assigning their children.",
                user_id=client.id,
                role=client.role.value,
            )
        self._eligibility.validate_client(client, UserRole.GUARDIAN)

        connection = self._connections.create_connection(
            therapist.id,
            client.id,
            ClientType.GUARDIAN,
            ConnectionType.ADMIN_ASSIGNED,
            assigned_by=admin.id,
        )
        self._notify(
            EventType.CONNECTION_CREATED, admin.id, (therapist.id, client.id), connection.id
        )
        return connection

    def terminate_connection(
        self,
        connection_id: str,
        actor_id: str,
        reason: str | None = None,
    ) -> Connection:
        """End a connection on behalf of an admin or one of its parties."""
        connection = self.get_connection(connection_id)
        actor = self._users.find_user(actor_id)
        client = self._users.find_user(connection.client_id)
        if actor is None or not self._gate.can_terminate_connection(actor, connection, client):
            logger.debug("Rejected termination of %s by %s", connection_id, actor_id)
            raise UnauthorizedError(
                "You are not allowed to terminate this connection.",
                connection_id=connection_id,
                actor_id=actor_id,
            )

        terminated = self._connections.terminate_connection(connection_id, actor.id, reason)
        self._notify(
            EventType.CONNECTION_TERMINATED,
            actor.id,
            (terminated.therapist_id, terminated.client_id),
            terminated.id,
        )
        return terminated

    # ------------------------------------------------------------------ Queries
    def get_connection(self, connection_id: str) -> Connection:
        connection = self._connections.get_connection(connection_id)
        if connection is None:
            raise NotFoundError(
                f"Connection {connection_id} does not exist.", connection_id=connection_id
            )
        return connection

    def get_history(self, connection_id: str) -> list[Connection]:
        return self._connections.get_history(connection_id)

    def has_active_connection(self, user_a: str, user_b: str) -> bool:
        return self._connections.has_active_connection(user_a, user_b)

    def get_therapist_connections(
        self,
        therapist_id: str,
        client_type: ClientType | str | None = None,
    ) -> list[Connection]:
        return self._connections.list_for_therapist(therapist_id, client_type=client_type)

    def get_client_connections(self, client_id: str) -> list[Connection]:
        return self._connections.list_for_client(client_id)

    def get_all_connections(self, status: ConnectionStatus | str | None = None) -> list[Connection]:
        return self._connections.list_connections(status)

    def statistics(self) -> dict[str, int]:
        return self._connections.statistics()

    def can_access_feature(self, actor_id: str, other_id: str, feature: str) -> bool:
        """Whether ``actor_id`` may use ``feature`` (messaging, mood data, ...) with ``other_id``."""
        actor = self._users.find_user(actor_id)
        other = self._users.find_user(other_id)
        if actor is None or other is None:
            return False
        connection = self._connections.latest_connection_between(actor.id, other.id)
        return self._gate.can_access_feature(actor, other, feature, connection)

    # -------------------------------------------------------- Therapist search
    def available_therapists(self, guardian_id: str) -> list[User]:
        """Active therapists the guardian is not already actively connected to."""
        connected = {item.therapist_id for item in self._connections.list_for_client(guardian_id)}
        return [user for user in self._active_therapists() if user.id not in connected]

    def therapists_by_workload(self) -> list[tuple[User, int]]:
        """Active therapists with their active connection counts, lightest load first."""
        counts = self._connections.active_counts_by_therapist()
        ranked = [(user, counts.get(user.id, 0)) for user in self._active_therapists()]
        # ties keep directory order
        return sorted(ranked, key=lambda item: item[1])

    def recommended_therapists(self, guardian_id: str, limit: int = 5) -> list[User]:
        """Available therapists for ``guardian_id`` ranked by workload."""
        available = {user.id for user in self.available_therapists(guardian_id)}
        ranked = [user for user, _ in self.therapists_by_workload() if user.id in available]
        return ranked[: max(limit, 0)]

    # ----------------------------------------------------------------- Helpers
    def _require_user(self, user_id: str) -> User:
        user = self._users.find_user(user_id)
        if user is None:
            raise NotFoundError(f"User {user_id} does not exist.", user_id=user_id)
        return user

    def _active_therapists(self) -> list[User]:
        return [
            user
            for user in self._users.list_users(UserRole.THERAPIST)
            if self._eligibility.is_eligible_therapist(user)
        ]

    def _notify(
        self,
        event_type: EventType,
        actor_id: str,
        subject_ids: tuple[str, ...],
        record_id: str,
    ) -> None:
        notify_safely(
            self._dispatcher,
            NotificationEvent(
                event_type=event_type,
                actor_id=actor_id,
                subject_ids=subject_ids,
                connection_or_request_id=record_id,
            ),
        )


__all__ = ["ConnectionManager"]
