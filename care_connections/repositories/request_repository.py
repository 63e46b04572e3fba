"""SQLAlchemy-backed repository for connection requests."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.sql.elements import ColumnElement

from care_connections.db.schema import DbConnectionRequest
from care_connections.errors import (
    AlreadyProcessedError,
    DuplicateRequestError,
    NotFoundError,
)
from care_connections.models.connection import Connection
from care_connections.models.connection_request import (
    ConnectionRequest,
    RequestStatus,
    RequestType,
)
from care_connections.repositories.base import as_utc, commit_or_raise, storage_errors, utcnow
from care_connections.repositories.connection_repository import ConnectionRepository

logger = logging.getLogger(__name__)


class ConnectionRequestRepository:
    """Repository that persists requests and applies their status transitions.

    Every transition is a conditional update from ``pending`` so two reviewers
    racing on the same request cannot both win.
    """

    def __init__(self, session_factory: sessionmaker[Session]):
        self._session_factory = session_factory

    # ------------------------------------------------------------------ Queries
    def get_request(self, request_id: str) -> ConnectionRequest | None:
        with storage_errors("get_request"), self._session_factory() as session:
            row = session.get(DbConnectionRequest, request_id)
            return self._to_model(row) if row is not None else None

    def has_pending(
        self,
        requester_id: str,
        target_therapist_id: str,
        target_client_id: str | None = None,
    ) -> bool:
        """Return whether a pending request exists for the exact triple."""
        with storage_errors("has_pending"), self._session_factory() as session:
            return self._pending_exists_in_session(
                session, requester_id, target_therapist_id, target_client_id
            )

    def list_pending_for_therapist(self, therapist_id: str) -> list[ConnectionRequest]:
        return self._fetch(
            "list_pending_for_therapist",
            DbConnectionRequest.target_therapist_id == therapist_id,
            DbConnectionRequest.status == RequestStatus.PENDING.value,
        )

    def list_by_requester(self, requester_id: str) -> list[ConnectionRequest]:
        return self._fetch("list_by_requester", DbConnectionRequest.requester_id == requester_id)

    def list_requests(self, status: RequestStatus | str | None = None) -> list[ConnectionRequest]:
        if status is None:
            return self._fetch("list_requests")
        return self._fetch(
            "list_requests", DbConnectionRequest.status == RequestStatus(status).value
        )

    def statistics(self) -> dict[str, int]:
        """Counts for the admin dashboard."""
        with storage_errors("statistics"), self._session_factory() as session:

            def count(criterion: ColumnElement[bool]) -> int:
                return (
                    session.scalar(
                        select(func.count()).select_from(DbConnectionRequest).where(criterion)
                    )
                    or 0
                )

            return {
                "total_pending": count(DbConnectionRequest.status == RequestStatus.PENDING.value),
                "total_approved": count(DbConnectionRequest.status == RequestStatus.APPROVED.value),
                "total_declined": count(DbConnectionRequest.status == RequestStatus.DECLINED.value),
                "total_cancelled": count(DbConnectionRequest.status == RequestStatus.CANCELLED.value),
                "guardian_to_therapist": count(
                    DbConnectionRequest.request_type == RequestType.GUARDIAN_TO_THERAPIST.value
                ),
                "child_assignments": count(
                    DbConnectionRequest.request_type == RequestType.GUARDIAN_CHILD_ASSIGNMENT.value
                ),
            }

    # ----------------------------------------------------------- Mutating ops
    def create_pending(self, request: ConnectionRequest) -> ConnectionRequest:
        """Insert ``request`` as pending unless the same triple is already pending."""
        if not request.is_pending:
            raise ValueError("Only pending requests can be created.")

        def duplicate() -> DuplicateRequestError:
            return DuplicateRequestError(
                requester_id=request.requester_id,
                target_therapist_id=request.target_therapist_id,
                target_client_id=request.target_client_id,
            )

        with storage_errors("create_pending"), self._session_factory() as session:
            if self._pending_exists_in_session(
                session,
                request.requester_id,
                request.target_therapist_id,
                request.target_client_id,
            ):
                raise duplicate()
            session.add(DbConnectionRequest(**self._to_record(request)))
            commit_or_raise(session, duplicate)

        logger.info(
            "Created %s request %s from %s to therapist %s",
            request.request_type.value,
            request.id,
            request.requester_id,
            request.target_therapist_id,
        )
        return request

    def approve(self, request_id: str, reviewer_id: str) -> tuple[ConnectionRequest, Connection]:
        """Approve a pending request and create its connection in one transaction.

        The active-pair check is repeated here since the pair may have been
        connected after the request was created.
        """
        with storage_errors("approve"), self._session_factory() as session:
            row, now = self._transition_in_session(
                session, request_id, RequestStatus.APPROVED, reviewer_id
            )
            request = self._to_model(row)
            connection = Connection(
                therapist_id=request.target_therapist_id,
                client_id=request.client_id,
                client_type=request.client_type,
                connection_type=request.connection_type,
                assigned_by=reviewer_id,
                assigned_at=now,
            )
            ConnectionRepository.insert_active_in_session(session, connection)
            commit_or_raise(
                session,
                lambda: ConnectionRepository.duplicate_error(
                    connection.therapist_id, connection.client_id
                ),
            )

        logger.info(
            "Request %s approved by %s; created connection %s",
            request_id,
            reviewer_id,
            connection.id,
        )
        return request, connection

    def decline(self, request_id: str, reviewer_id: str) -> ConnectionRequest:
        return self._finish(request_id, RequestStatus.DECLINED, reviewer_id, "decline")

    def cancel(self, request_id: str, requester_id: str) -> ConnectionRequest:
        return self._finish(request_id, RequestStatus.CANCELLED, requester_id, "cancel")

    # ----------------------------------------------------------------- Helpers
    def _finish(
        self,
        request_id: str,
        status: RequestStatus,
        actor_id: str,
        operation: str,
    ) -> ConnectionRequest:
        with storage_errors(operation), self._session_factory() as session:
            row, _ = self._transition_in_session(session, request_id, status, actor_id)
            request = self._to_model(row)
            session.commit()

        logger.info("Request %s %s by %s", request_id, status.value, actor_id)
        return request

    @staticmethod
    def _transition_in_session(
        session: Session,
        request_id: str,
        status: RequestStatus,
        actor_id: str,
    ) -> tuple[DbConnectionRequest, datetime]:
        row = session.get(DbConnectionRequest, request_id)
        if row is None:
            raise NotFoundError(f"Request {request_id} does not exist.", request_id=request_id)
        if row.status != RequestStatus.PENDING.value:
            raise AlreadyProcessedError(request_id=request_id, status=row.status)

        now = utcnow()
        result = session.execute(
            update(DbConnectionRequest)
            .where(
                DbConnectionRequest.id == request_id,
                DbConnectionRequest.status == RequestStatus.PENDING.value,
            )
            .values(status=status.value, reviewed_by=actor_id, reviewed_at=now)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            session.rollback()
            raise AlreadyProcessedError(request_id=request_id)

        session.refresh(row)
        return row, now

    @staticmethod
    def _triple_clause(
        requester_id: str,
        target_therapist_id: str,
        target_client_id: str | None,
    ) -> list[ColumnElement[bool]]:
        client_clause = (
            DbConnectionRequest.target_client_id.is_(None)
            if target_client_id is None
            else DbConnectionRequest.target_client_id == target_client_id
        )
        return [
            DbConnectionRequest.requester_id == requester_id,
            DbConnectionRequest.target_therapist_id == target_therapist_id,
            client_clause,
        ]

    @classmethod
    def _pending_exists_in_session(
        cls,
        session: Session,
        requester_id: str,
        target_therapist_id: str,
        target_client_id: str | None,
    ) -> bool:
        found = session.scalar(
            select(DbConnectionRequest.id)
            .where(*cls._triple_clause(requester_id, target_therapist_id, target_client_id))
            .where(DbConnectionRequest.status == RequestStatus.PENDING.value)
            .limit(1)
        )
        return found is not None

    def _fetch(self, operation: str, *criteria: ColumnElement[bool]) -> list[ConnectionRequest]:
        with storage_errors(operation), self._session_factory() as session:
            rows = session.scalars(
                select(DbConnectionRequest)
                .where(*criteria)
                .order_by(DbConnectionRequest.created_at.desc())
            ).all()
            return [self._to_model(row) for row in rows]

    @staticmethod
    def _to_model(record: DbConnectionRequest) -> ConnectionRequest:
        return ConnectionRequest(
            id=record.id,
            requester_id=record.requester_id,
            target_therapist_id=record.target_therapist_id,
            target_client_id=record.target_client_id,
            request_type=RequestType(record.request_type),
            message=record.message,
            status=RequestStatus(record.status),
            created_at=as_utc(record.created_at),
            reviewed_by=record.reviewed_by,
            reviewed_at=as_utc(record.reviewed_at),
        )

    @staticmethod
    def _to_record(request: ConnectionRequest) -> dict[str, Any]:
        return {
            "id": request.id,
            "requester_id": request.requester_id,
            "target_therapist_id": request.target_therapist_id,
            "target_client_id": request.target_client_id,
            "request_type": request.request_type.value,
            "message": request.message,
            "status": request.status.value,
            "created_at": request.created_at,
            "reviewed_by": request.reviewed_by,
            "reviewed_at": request.reviewed_at,
        }


__all__ = ["ConnectionRequestRepository"]
