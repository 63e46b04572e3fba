"""Repositories persisting connections and connection requests."""

from .connection_repository import ConnectionRepository
from .request_repository import ConnectionRequestRepository

__all__ = ["ConnectionRepository", "ConnectionRequestRepository"]
