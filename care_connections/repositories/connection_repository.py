"""SQLAlchemy-backed repository for therapist/client connections."""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import and_, func, or_, select, update
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.sql.elements import ColumnElement

from care_connections.db.schema import DbConnection
from care_connections.errors import AlreadyTerminatedError, DuplicateConnectionError, NotFoundError
from care_connections.models.connection import (
    ClientType,
    Connection,
    ConnectionStatus,
    ConnectionType,
)
from care_connections.repositories.base import as_utc, commit_or_raise, storage_errors, utcnow

logger = logging.getLogger(__name__)


class ConnectionRepository:
    """Authoritative store for connections.

    Owns the active-pair invariant: every insert checks for an existing active
    connection inside the inserting transaction, and the partial unique index
    catches whatever slips past that check under concurrency.
    """

    def __init__(self, session_factory: sessionmaker[Session]):
        self._session_factory = session_factory

    # ------------------------------------------------------------------ Queries
    def get_connection(self, connection_id: str) -> Connection | None:
        with storage_errors("get_connection"), self._session_factory() as session:
            row = session.get(DbConnection, connection_id)
            return self._to_model(row) if row is not None else None

    def has_active_connection(self, user_a: str, user_b: str) -> bool:
        """Return whether the two users share an active connection, in either role."""
        with storage_errors("has_active_connection"), self._session_factory() as session:
            return self.active_exists_in_session(session, user_a, user_b)

    def get_active_connection(self, user_a: str, user_b: str) -> Connection | None:
        with storage_errors("get_active_connection"), self._session_factory() as session:
            row = session.scalars(
                select(DbConnection)
                .where(self._pair_clause(user_a, user_b))
                .where(DbConnection.status == ConnectionStatus.ACTIVE.value)
            ).first()
            return self._to_model(row) if row is not None else None

    def latest_connection_between(self, user_a: str, user_b: str) -> Connection | None:
        """Most relevant connection for two users: the active one, else the newest."""
        with storage_errors("latest_connection_between"), self._session_factory() as session:
            rows = session.scalars(
                select(DbConnection)
                .where(self._pair_clause(user_a, user_b))
                .order_by(DbConnection.assigned_at.desc())
            ).all()
        if not rows:
            return None
        active = [row for row in rows if row.status == ConnectionStatus.ACTIVE.value]
        return self._to_model(active[0] if active else rows[0])

    def get_history(self, connection_id: str) -> list[Connection]:
        """Return every connection for the same pair, most recent first."""
        with storage_errors("get_history"), self._session_factory() as session:
            row = session.get(DbConnection, connection_id)
            if row is None:
                raise NotFoundError(
                    f"Connection {connection_id} does not exist.", connection_id=connection_id
                )
            rows = session.scalars(
                select(DbConnection)
                .where(
                    DbConnection.therapist_id == row.therapist_id,
                    DbConnection.client_id == row.client_id,
                )
                .order_by(DbConnection.assigned_at.desc())
            ).all()
            return [self._to_model(item) for item in rows]

    def list_for_therapist(
        self,
        therapist_id: str,
        *,
        client_type: ClientType | str | None = None,
        status: ConnectionStatus | str | None = ConnectionStatus.ACTIVE,
    ) -> list[Connection]:
        query = select(DbConnection).where(DbConnection.therapist_id == therapist_id)
        if client_type is not None:
            query = query.where(DbConnection.client_type == ClientType(client_type).value)
        if status is not None:
            query = query.where(DbConnection.status == ConnectionStatus(status).value)
        return self._fetch(query, "list_for_therapist")

    def list_for_client(
        self,
        client_id: str,
        *,
        status: ConnectionStatus | str | None = ConnectionStatus.ACTIVE,
    ) -> list[Connection]:
        query = select(DbConnection).where(DbConnection.client_id == client_id)
        if status is not None:
            query = query.where(DbConnection.status == ConnectionStatus(status).value)
        return self._fetch(query, "list_for_client")

    def list_connections(self, status: ConnectionStatus | str | None = None) -> list[Connection]:
        query = select(DbConnection)
        if status is not None:
            query = query.where(DbConnection.status == ConnectionStatus(status).value)
        return self._fetch(query, "list_connections")

    def active_counts_by_therapist(self) -> dict[str, int]:
        """Number of active connections per therapist; therapists without any are absent."""
        with storage_errors("active_counts_by_therapist"), self._session_factory() as session:
            rows = session.execute(
                select(DbConnection.therapist_id, func.count())
                .where(DbConnection.status == ConnectionStatus.ACTIVE.value)
                .group_by(DbConnection.therapist_id)
            ).all()
            return {therapist_id: count for therapist_id, count in rows}

    def statistics(self) -> dict[str, int]:
        """Counts for the admin dashboard."""
        active = DbConnection.status == ConnectionStatus.ACTIVE.value
        with storage_errors("statistics"), self._session_factory() as session:

            def count(*criteria: ColumnElement[bool]) -> int:
                return session.scalar(select(func.count()).select_from(DbConnection).where(*criteria)) or 0

            return {
                "total_active": count(active),
                "total_terminated": count(DbConnection.status == ConnectionStatus.TERMINATED.value),
                "guardian_connections": count(active, DbConnection.client_type == ClientType.GUARDIAN.value),
                "child_connections": count(active, DbConnection.client_type == ClientType.CHILD.value),
                "admin_assigned": count(
                    active, DbConnection.connection_type == ConnectionType.ADMIN_ASSIGNED.value
                ),
                "guardian_requested": count(
                    active, DbConnection.connection_type == ConnectionType.GUARDIAN_REQUESTED.value
                ),
                "guardian_child_assignment": count(
                    active,
                    DbConnection.connection_type == ConnectionType.GUARDIAN_CHILD_ASSIGNMENT.value,
                ),
            }

    # ----------------------------------------------------------- Mutating ops
    def create_connection(
        self,
        therapist_id: str,
        client_id: str,
        client_type: ClientType | str,
        connection_type: ConnectionType | str,
        assigned_by: str | None,
    ) -> Connection:
        """Insert an active connection; fails if the pair is already connected."""
        connection = Connection(
            therapist_id=therapist_id,
            client_id=client_id,
            client_type=ClientType(client_type),
            connection_type=ConnectionType(connection_type),
            assigned_by=assigned_by,
            assigned_at=utcnow(),
        )
        with storage_errors("create_connection"), self._session_factory() as session:
            self.insert_active_in_session(session, connection)
            commit_or_raise(session, lambda: self.duplicate_error(therapist_id, client_id))

        logger.info(
            "Created %s connection %s between therapist %s and %s %s",
            connection.connection_type.value,
            connection.id,
            therapist_id,
            connection.client_type.value,
            client_id,
        )
        return connection

    def terminate_connection(
        self,
        connection_id: str,
        actor_id: str,
        reason: str | None = None,
    ) -> Connection:
        """Mark an active connection as terminated; the row is kept for history."""
        with storage_errors("terminate_connection"), self._session_factory() as session:
            row = session.get(DbConnection, connection_id)
            if row is None:
                raise NotFoundError(
                    f"Connection {connection_id} does not exist.", connection_id=connection_id
                )
            if row.status == ConnectionStatus.TERMINATED.value:
                raise AlreadyTerminatedError(connection_id=connection_id)

            result = session.execute(
                update(DbConnection)
                .where(
                    DbConnection.id == connection_id,
                    DbConnection.status == ConnectionStatus.ACTIVE.value,
                )
                .values(
                    status=ConnectionStatus.TERMINATED.value,
                    terminated_at=utcnow(),
                    terminated_by=actor_id,
                    termination_reason=reason,
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                session.rollback()
                raise AlreadyTerminatedError(connection_id=connection_id)

            session.refresh(row)
            terminated = self._to_model(row)
            session.commit()

        logger.info("Connection %s terminated by %s", connection_id, actor_id)
        return terminated

    # ------------------------------------------------- Session-level helpers
    @classmethod
    def active_exists_in_session(cls, session: Session, user_a: str, user_b: str) -> bool:
        found = session.scalar(
            select(DbConnection.id)
            .where(cls._pair_clause(user_a, user_b))
            .where(DbConnection.status == ConnectionStatus.ACTIVE.value)
            .limit(1)
        )
        return found is not None

    @classmethod
    def insert_active_in_session(cls, session: Session, connection: Connection) -> None:
        """Stage ``connection`` in ``session`` after re-checking the active-pair invariant."""
        if cls.active_exists_in_session(session, connection.therapist_id, connection.client_id):
            raise cls.duplicate_error(connection.therapist_id, connection.client_id)
        session.add(DbConnection(**cls._to_record(connection)))

    # ----------------------------------------------------------------- Helpers
    def _fetch(self, query, operation: str) -> list[Connection]:
        with storage_errors(operation), self._session_factory() as session:
            rows = session.scalars(query.order_by(DbConnection.assigned_at.desc())).all()
            return [self._to_model(row) for row in rows]

    @staticmethod
    def _pair_clause(user_a: str, user_b: str) -> ColumnElement[bool]:
        return or_(
            and_(DbConnection.therapist_id == user_a, DbConnection.client_id == user_b),
            and_(DbConnection.therapist_id == user_b, DbConnection.client_id == user_a),
        )

    @staticmethod
    def duplicate_error(therapist_id: str, client_id: str) -> DuplicateConnectionError:
        return DuplicateConnectionError(
            "An active connection already exists between this therapist and client.",
            therapist_id=therapist_id,
            client_id=client_id,
        )

    @staticmethod
    def _to_model(record: DbConnection) -> Connection:
        return Connection(
            id=record.id,
            therapist_id=record.therapist_id,
            client_id=record.client_id,
            client_type=ClientType(record.client_type),
            connection_type=ConnectionType(record.connection_type),
            status=ConnectionStatus(record.status),
            assigned_at=as_utc(record.assigned_at),
            terminated_at=as_utc(record.terminated_at),
            assigned_by=record.assigned_by,
            terminated_by=record.terminated_by,
            termination_reason=record.termination_reason,
        )

    @staticmethod
    def _to_record(connection: Connection) -> dict[str, Any]:
        return {
            "id": connection.id,
            "therapist_id": connection.therapist_id,
            "client_id": connection.client_id,
            "client_type": connection.client_type.value,
            "connection_type": connection.connection_type.value,
            "status": connection.status.value,
            "assigned_at": connection.assigned_at,
            "terminated_at": connection.terminated_at,
            "assigned_by": connection.assigned_by,
            "terminated_by": connection.terminated_by,
            "termination_reason": connection.termination_reason,
        }


__all__ = ["ConnectionRepository"]
