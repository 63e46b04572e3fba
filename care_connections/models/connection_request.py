"""Pydantic model for pending connection and child-assignment requests."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

from care_connections.models.connection import ClientType, ConnectionType


class RequestType(str, Enum):
    GUARDIAN_TO_THERAPIST = "guardian_to_therapist"
    GUARDIAN_CHILD_ASSIGNMENT = "guardian_child_assignment"


class RequestStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    DECLINED = "declined"
    CANCELLED = "cancelled"


class RequestAction(str, Enum):
    APPROVE = "approve"
    DECLINE = "decline"


class ConnectionRequest(BaseModel):
    """A guardian's ask for a future connection.

    Rows are never deleted; once processed the request stays as an audit
    record with ``reviewed_by``/``reviewed_at`` filled in.
    """

    id: str = Field(default_factory=lambda: str(uuid4()))
    requester_id: str
    target_therapist_id: str
    target_client_id: str | None = None
    request_type: RequestType
    message: str | None = None
    status: RequestStatus = RequestStatus.PENDING
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    reviewed_by: str | None = None
    reviewed_at: datetime | None = None

    model_config = ConfigDict(frozen=True, from_attributes=True)

    @property
    def is_pending(self) -> bool:
        return self.status == RequestStatus.PENDING

    @property
    def client_id(self) -> str:
        """The user who becomes the client once the request is approved."""
        return self.target_client_id or self.requester_id

    @property
    def client_type(self) -> ClientType:
        if self.request_type == RequestType.GUARDIAN_CHILD_ASSIGNMENT:
            return ClientType.CHILD
        return ClientType.GUARDIAN

    @property
    def connection_type(self) -> ConnectionType:
        if self.request_type == RequestType.GUARDIAN_CHILD_ASSIGNMENT:
            return ConnectionType.GUARDIAN_CHILD_ASSIGNMENT
        return ConnectionType.GUARDIAN_REQUESTED


__all__ = ["ConnectionRequest", "RequestAction", "RequestStatus", "RequestType"]
