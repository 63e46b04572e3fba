"""Role-based authorization for connection operations."""

from __future__ import annotations

from care_connections.models.connection import Connection, ClientType
from care_connections.models.connection_request import ConnectionRequest
from care_connections.models.user import User, UserRole

# Features a terminated connection still grants (read-only history).
HISTORICAL_FEATURES = frozenset({"appointment_history", "mood_data_history", "message_history"})
# Features a guardian and their own child share without any therapist link.
FAMILY_FEATURES = frozenset({"messaging", "mood_data_view", "appointment_scheduling"})


class PermissionGate:
    """Answers who may do what; never mutates anything."""

    def can_create_connection_request(self, actor: User) -> bool:
        return actor.role == UserRole.GUARDIAN and actor.is_active

    def can_create_admin_connection(self, actor: User) -> bool:
        return actor.role == UserRole.ADMIN and actor.is_active

    def can_approve_or_decline(self, actor: User, request: ConnectionRequest) -> bool:
        if actor.role == UserRole.ADMIN:
            return actor.is_active
        return actor.id == request.target_therapist_id

    def can_assign_child(self, actor: User, child: User) -> bool:
        return (
            actor.role == UserRole.GUARDIAN
            and actor.is_active
            and child.role == UserRole.CHILD
            and child.guardian_id == actor.id
        )

    def can_cancel_request(self, actor: User, request: ConnectionRequest) -> bool:
        return actor.id == request.requester_id

    def can_terminate_connection(
        self,
        actor: User,
        connection: Connection,
        client: User | None = None,
    ) -> bool:
        """Admins and either party may end a connection.

        A guardian may also end a connection held by their child; pass the
        child as ``client`` so ownership can be checked.
        """
        if actor.role == UserRole.ADMIN:
            return True
        if actor.id in (connection.therapist_id, connection.client_id):
            return True
        if connection.client_type == ClientType.CHILD and client is not None:
            return client.id == connection.client_id and client.guardian_id == actor.id
        return False

    def can_access_feature(
        self,
        actor: User,
        other: User,
        feature: str,
        connection: Connection | None,
    ) -> bool:
        """Decide feature access between two users given their latest connection."""
        if actor.role == UserRole.ADMIN:
            return True
        if connection is None:
            if self._is_family(actor, other):
                return feature in FAMILY_FEATURES
            return False
        if not connection.is_active:
            return feature in HISTORICAL_FEATURES
        return True

    @staticmethod
    def _is_family(user: User, other: User) -> bool:
        if user.role == UserRole.GUARDIAN and other.role == UserRole.CHILD:
            return other.guardian_id == user.id
        if user.role == UserRole.CHILD and other.role == UserRole.GUARDIAN:
            return user.guardian_id == other.id
        return False


__all__ = ["FAMILY_FEATURES", "HISTORICAL_FEATURES", "PermissionGate"]
