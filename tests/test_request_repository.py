"""Tests for request persistence and status transitions."""

from __future__ import annotations

import pytest

from care_connections.errors import (
    AlreadyProcessedError,
    DuplicateConnectionError,
    DuplicateRequestError,
    NotFoundError,
)
from care_connections.models.connection import ClientType, ConnectionType
from care_connections.models.connection_request import ConnectionRequest, RequestStatus, RequestType
from care_connections.repositories import ConnectionRepository, ConnectionRequestRepository


def _request(**overrides) -> ConnectionRequest:
    params = {
        "requester_id": "guardian",
        "target_therapist_id": "therapist",
        "request_type": RequestType.GUARDIAN_TO_THERAPIST,
        "message": "We would like some help.",
    }
    params.update(overrides)
    return ConnectionRequest(**params)


def test_create_pending_round_trips(request_repository):
    created = request_repository.create_pending(_request())

    stored = request_repository.get_request(created.id)
    assert stored == created
    assert stored.created_at.tzinfo is not None
    assert stored.status == RequestStatus.PENDING
    assert request_repository.has_pending("guardian", "therapist")
    assert not request_repository.has_pending("guardian", "therapist", "child")


def test_pending_duplicate_is_rejected(request_repository):
    request_repository.create_pending(_request())

    with pytest.raises(DuplicateRequestError):
        request_repository.create_pending(_request(message=None))


def test_distinct_child_triples_may_both_be_pending(request_repository):
    child_request = dict(
        target_client_id="child",
        request_type=RequestType.GUARDIAN_CHILD_ASSIGNMENT,
    )
    request_repository.create_pending(_request())
    request_repository.create_pending(_request(**child_request))

    assert request_repository.has_pending("guardian", "therapist", "child")
    with pytest.raises(DuplicateRequestError):
        request_repository.create_pending(_request(**child_request))


def test_unique_index_backs_the_pending_check(request_repository, monkeypatch):
    """A NULL client id still collides thanks to the coalesced index column."""
    request_repository.create_pending(_request())
    monkeypatch.setattr(
        ConnectionRequestRepository,
        "_pending_exists_in_session",
        classmethod(lambda cls, session, requester, therapist, client: False),
    )

    with pytest.raises(DuplicateRequestError):
        request_repository.create_pending(_request())

    assert len(request_repository.list_requests(RequestStatus.PENDING)) == 1


def test_non_pending_requests_cannot_be_created(request_repository):
    with pytest.raises(ValueError):
        request_repository.create_pending(_request(status=RequestStatus.APPROVED))


def test_approve_creates_connection_atomically(request_repository, connection_repository):
    created = request_repository.create_pending(
        _request(target_client_id="child", request_type=RequestType.GUARDIAN_CHILD_ASSIGNMENT)
    )

    approved, connection = request_repository.approve(created.id, "therapist")

    assert approved.status == RequestStatus.APPROVED
    assert approved.reviewed_by == "therapist"
    assert approved.reviewed_at is not None
    assert connection.client_id == "child"
    assert connection.client_type == ClientType.CHILD
    assert connection.connection_type == ConnectionType.GUARDIAN_CHILD_ASSIGNMENT
    assert connection.assigned_by == "therapist"
    assert connection_repository.get_connection(connection.id) is not None


def test_approve_rolls_back_when_pair_already_connected(request_repository, connection_repository):
    created = request_repository.create_pending(_request())
    connection_repository.create_connection(
        "therapist", "guardian", ClientType.GUARDIAN, ConnectionType.ADMIN_ASSIGNED, "admin"
    )

    with pytest.raises(DuplicateConnectionError):
        request_repository.approve(created.id, "therapist")

    assert request_repository.get_request(created.id).status == RequestStatus.PENDING
    assert len(connection_repository.list_connections()) == 1


def test_approve_unique_index_backstop(request_repository, connection_repository, monkeypatch):
    """The active-pair index rolls back the whole approval when the pre-check misses."""
    created = request_repository.create_pending(_request())
    connection_repository.create_connection(
        "therapist", "guardian", ClientType.GUARDIAN, ConnectionType.ADMIN_ASSIGNED, "admin"
    )
    monkeypatch.setattr(
        ConnectionRepository,
        "active_exists_in_session",
        classmethod(lambda cls, session, user_a, user_b: False),
    )

    with pytest.raises(DuplicateConnectionError):
        request_repository.approve(created.id, "therapist")

    stored = request_repository.get_request(created.id)
    assert stored.status == RequestStatus.PENDING
    assert stored.reviewed_by is None
    assert len(connection_repository.list_connections()) == 1


def test_transitions_happen_once(request_repository):
    created = request_repository.create_pending(_request())
    request_repository.decline(created.id, "therapist")

    with pytest.raises(AlreadyProcessedError):
        request_repository.approve(created.id, "therapist")
    with pytest.raises(AlreadyProcessedError):
        request_repository.cancel(created.id, "guardian")
    assert request_repository.get_request(created.id).status == RequestStatus.DECLINED


def test_transition_of_missing_request(request_repository):
    with pytest.raises(NotFoundError):
        request_repository.decline("missing", "therapist")


def test_listing_is_newest_first(request_repository):
    first = request_repository.create_pending(_request())
    second = request_repository.create_pending(_request(requester_id="guardian-2"))
    third = request_repository.create_pending(_request(target_therapist_id="therapist-2"))
    request_repository.cancel(third.id, "guardian")

    pending = request_repository.list_pending_for_therapist("therapist")
    assert [item.id for item in pending] == [second.id, first.id]
    assert [item.id for item in request_repository.list_by_requester("guardian")] == [third.id, first.id]
    assert [item.id for item in request_repository.list_requests()] == [third.id, second.id, first.id]
    assert [item.id for item in request_repository.list_requests("cancelled")] == [third.id]


def test_statistics(request_repository):
    first = request_repository.create_pending(_request())
    request_repository.create_pending(
        _request(target_client_id="child", request_type=RequestType.GUARDIAN_CHILD_ASSIGNMENT)
    )
    request_repository.decline(first.id, "therapist")

    assert request_repository.statistics() == {
        "total_pending": 1,
        "total_approved": 0,
        "total_declined": 1,
        "total_cancelled": 0,
        "guardian_to_therapist": 1,
        "child_assignments": 1,
    }
