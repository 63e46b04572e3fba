"""SQLAlchemy declarative schema for connections and connection requests."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Index, String, Text, func, literal_column, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for SQLAlchemy declarative mappings."""


class DbConnection(Base):
    """ORM mapping for a therapist/client connection."""

    __tablename__ = "therapist_client_connections"
    __table_args__ = (
        Index("ix_connections_therapist_status", "therapist_id", "status"),
        Index("ix_connections_client_status", "client_id", "status"),
        # At most one active connection per pair; partial index on both dialects
        Index(
            "uq_connections_active_pair",
            "therapist_id",
            "client_id",
            unique=True,
            sqlite_where=text("status = 'active'"),
            postgresql_where=text("status = 'active'"),
        ),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    therapist_id: Mapped[str] = mapped_column(String(64), nullable=False)
    client_id: Mapped[str] = mapped_column(String(64), nullable=False)
    client_type: Mapped[str] = mapped_column(String(16), nullable=False)
    connection_type: Mapped[str] = mapped_column(String(32), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="active")
    assigned_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    terminated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    assigned_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    terminated_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    termination_reason: Mapped[str | None] = mapped_column(Text, nullable=True)


class DbConnectionRequest(Base):
    """ORM mapping for a connection or child-assignment request."""

    __tablename__ = "connection_requests"
    __table_args__ = (
        Index("ix_requests_therapist_status", "target_therapist_id", "status"),
        Index("ix_requests_requester", "requester_id"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    requester_id: Mapped[str] = mapped_column(String(64), nullable=False)
    target_therapist_id: Mapped[str] = mapped_column(String(64), nullable=False)
    target_client_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    request_type: Mapped[str] = mapped_column(String(32), nullable=False)
    message: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="pending")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    reviewed_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


# One pending request per (requester, therapist, client) triple. NULL client ids
# are folded to '' so guardian-to-therapist requests collide with each other.
Index(
    "uq_requests_pending_triple",
    DbConnectionRequest.requester_id,
    DbConnectionRequest.target_therapist_id,
    func.coalesce(DbConnectionRequest.target_client_id, literal_column("''")),
    unique=True,
    sqlite_where=text("status = 'pending'"),
    postgresql_where=text("status = 'pending'"),
)


def create_all(engine: Engine) -> None:
    """Create database tables for the schema."""
    Base.metadata.create_all(engine, checkfirst=True)


__all__ = ["Base", "DbConnection", "DbConnectionRequest", "create_all"]
