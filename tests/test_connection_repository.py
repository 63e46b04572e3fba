"""Tests for the connection store."""

from __future__ import annotations

from datetime import timedelta

import pytest

from care_connections.errors import AlreadyTerminatedError, DuplicateConnectionError, NotFoundError
from care_connections.models.connection import ClientType, ConnectionStatus, ConnectionType
from care_connections.repositories import ConnectionRepository


def _connect(repo: ConnectionRepository, therapist_id="therapist", client_id="guardian", **overrides):
    params = {
        "client_type": ClientType.GUARDIAN,
        "connection_type": ConnectionType.ADMIN_ASSIGNED,
        "assigned_by": "admin",
    }
    params.update(overrides)
    return repo.create_connection(therapist_id, client_id, **params)


def test_create_connection_persists_active_row(connection_repository):
    connection = _connect(connection_repository)

    stored = connection_repository.get_connection(connection.id)
    assert stored is not None
    assert stored.status == ConnectionStatus.ACTIVE
    assert stored.therapist_id == "therapist"
    assert stored.client_id == "guardian"
    assert stored.assigned_by == "admin"
    assert stored.terminated_at is None


def test_timestamps_read_back_in_utc(connection_repository):
    connection = _connect(connection_repository)
    terminated = connection_repository.terminate_connection(connection.id, "admin")

    stored = connection_repository.get_connection(connection.id)
    assert stored.assigned_at == connection.assigned_at
    assert stored.assigned_at.utcoffset() == timedelta(0)
    assert stored.terminated_at == terminated.terminated_at
    assert stored.terminated_at.tzinfo is not None


def test_has_active_connection_is_symmetric(connection_repository):
    _connect(connection_repository)

    assert connection_repository.has_active_connection("therapist", "guardian")
    assert connection_repository.has_active_connection("guardian", "therapist")
    assert not connection_repository.has_active_connection("therapist", "guardian-2")


def test_duplicate_active_connection_is_rejected(connection_repository):
    _connect(connection_repository)

    with pytest.raises(DuplicateConnectionError) as excinfo:
        _connect(connection_repository, connection_type=ConnectionType.GUARDIAN_REQUESTED)

    assert excinfo.value.details == {"therapist_id": "therapist", "client_id": "guardian"}
    assert len(connection_repository.list_connections()) == 1


def test_unique_index_backs_the_active_pair_check(connection_repository, monkeypatch):
    """Two writers that both pass the pre-insert check still yield one active row."""
    _connect(connection_repository)
    monkeypatch.setattr(
        ConnectionRepository,
        "active_exists_in_session",
        classmethod(lambda cls, session, user_a, user_b: False),
    )

    with pytest.raises(DuplicateConnectionError):
        _connect(connection_repository)

    assert len(connection_repository.list_connections(ConnectionStatus.ACTIVE)) == 1


def test_terminate_connection_keeps_history(connection_repository):
    connection = _connect(connection_repository)

    terminated = connection_repository.terminate_connection(connection.id, "therapist", "moved away")

    assert terminated.status == ConnectionStatus.TERMINATED
    assert terminated.terminated_at is not None
    assert terminated.terminated_by == "therapist"
    assert terminated.termination_reason == "moved away"
    assert not connection_repository.has_active_connection("therapist", "guardian")
    assert connection_repository.get_connection(connection.id) is not None


def test_terminate_missing_connection(connection_repository):
    with pytest.raises(NotFoundError):
        connection_repository.terminate_connection("missing", "admin")


def test_terminate_twice_fails(connection_repository):
    connection = _connect(connection_repository)
    connection_repository.terminate_connection(connection.id, "admin")

    with pytest.raises(AlreadyTerminatedError):
        connection_repository.terminate_connection(connection.id, "admin")


def test_pair_can_reconnect_after_termination(connection_repository):
    first = _connect(connection_repository)
    connection_repository.terminate_connection(first.id, "admin")

    second = _connect(connection_repository, connection_type=ConnectionType.GUARDIAN_REQUESTED)

    assert second.id != first.id
    assert connection_repository.has_active_connection("therapist", "guardian")


def test_history_lists_pair_most_recent_first(connection_repository):
    first = _connect(connection_repository)
    connection_repository.terminate_connection(first.id, "admin")
    second = _connect(connection_repository)
    _connect(connection_repository, client_id="guardian-2")

    history = connection_repository.get_history(first.id)

    assert [item.id for item in history] == [second.id, first.id]
    assert [item.status for item in history] == [ConnectionStatus.ACTIVE, ConnectionStatus.TERMINATED]
    # Restartable: a second call yields the same sequence.
    assert [item.id for item in connection_repository.get_history(second.id)] == [second.id, first.id]


def test_history_of_missing_connection(connection_repository):
    with pytest.raises(NotFoundError):
        connection_repository.get_history("missing")


def test_latest_connection_prefers_active(connection_repository):
    first = _connect(connection_repository)
    connection_repository.terminate_connection(first.id, "admin")
    assert connection_repository.latest_connection_between("guardian", "therapist").id == first.id

    second = _connect(connection_repository)
    assert connection_repository.latest_connection_between("guardian", "therapist").id == second.id
    assert connection_repository.latest_connection_between("guardian", "therapist-2") is None


def test_listing_filters(connection_repository):
    _connect(connection_repository)
    _connect(
        connection_repository,
        client_id="child",
        client_type=ClientType.CHILD,
        connection_type=ConnectionType.GUARDIAN_CHILD_ASSIGNMENT,
    )
    other = _connect(connection_repository, therapist_id="therapist-2")
    connection_repository.terminate_connection(other.id, "admin")

    assert len(connection_repository.list_for_therapist("therapist")) == 2
    children = connection_repository.list_for_therapist("therapist", client_type="child")
    assert [item.client_id for item in children] == ["child"]
    assert [item.therapist_id for item in connection_repository.list_for_client("guardian")] == ["therapist"]
    assert len(connection_repository.list_for_client("guardian", status=None)) == 2
    assert len(connection_repository.list_connections("terminated")) == 1


def test_statistics_count_active_connections(connection_repository):
    _connect(connection_repository)
    _connect(
        connection_repository,
        client_id="child",
        client_type=ClientType.CHILD,
        connection_type=ConnectionType.GUARDIAN_CHILD_ASSIGNMENT,
    )
    ended = _connect(
        connection_repository, client_id="guardian-2", connection_type=ConnectionType.GUARDIAN_REQUESTED
    )
    connection_repository.terminate_connection(ended.id, "admin")

    stats = connection_repository.statistics()

    assert stats == {
        "total_active": 2,
        "total_terminated": 1,
        "guardian_connections": 1,
        "child_connections": 1,
        "admin_assigned": 1,
        "guardian_requested": 0,
        "guardian_child_assignment": 1,
    }


def test_active_counts_by_therapist(connection_repository):
    _connect(connection_repository)
    _connect(connection_repository, client_id="guardian-2")
    ended = _connect(connection_repository, therapist_id="therapist-2")
    connection_repository.terminate_connection(ended.id, "admin")

    assert connection_repository.active_counts_by_therapist() == {"therapist": 2}
