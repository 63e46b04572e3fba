"""Pydantic model for therapist/client connections."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field


class ClientType(str, Enum):
    GUARDIAN = "guardian"
    CHILD = "child"


class ConnectionType(str, Enum):
    ADMIN_ASSIGNED = "admin_assigned"
    GUARDIAN_REQUESTED = "guardian_requested"
    GUARDIAN_CHILD_ASSIGNMENT = "guardian_child_assignment"


class ConnectionStatus(str, Enum):
    ACTIVE = "active"
    TERMINATED = "terminated"


class Connection(BaseModel):
    """A therapeutic relationship between a therapist and a guardian or child.

    Terminated connections are kept for history; at most one connection per
    ``(therapist_id, client_id)`` pair may be active.
    """

    id: str = Field(default_factory=lambda: str(uuid4()))
    therapist_id: str
    client_id: str
    client_type: ClientType
    connection_type: ConnectionType
    status: ConnectionStatus = ConnectionStatus.ACTIVE
    assigned_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    terminated_at: datetime | None = None
    assigned_by: str | None = None
    terminated_by: str | None = None
    termination_reason: str | None = None

    model_config = ConfigDict(frozen=True, from_attributes=True)

    @property
    def is_active(self) -> bool:
        return self.status == ConnectionStatus.ACTIVE

    def involves(self, user_id: str) -> bool:
        return user_id in (self.therapist_id, self.client_id)


__all__ = ["ClientType", "Connection", "ConnectionStatus", "ConnectionType"]
