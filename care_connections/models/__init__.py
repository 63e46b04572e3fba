"""Domain models for users, connections and connection requests."""

from .connection import ClientType, Connection, ConnectionStatus, ConnectionType
from .connection_request import ConnectionRequest, RequestAction, RequestStatus, RequestType
from .user import User, UserRole, UserStatus

__all__ = [
    "ClientType",
    "Connection",
    "ConnectionRequest",
    "ConnectionStatus",
    "ConnectionType",
    "RequestAction",
    "RequestStatus",
    "RequestType",
    "User",
    "UserRole",
    "UserStatus",
]
