"""Persistence helpers for connection and request tables."""

from .engine import create_engine, create_engine_from_settings, create_session_factory
from .schema import Base, DbConnection, DbConnectionRequest, create_all

__all__ = [
    "Base",
    "DbConnection",
    "DbConnectionRequest",
    "create_all",
    "create_engine",
    "create_engine_from_settings",
    "create_session_factory",
]
