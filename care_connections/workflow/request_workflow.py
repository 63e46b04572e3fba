"""Request workflow: guardians ask, therapists approve or decline."""

from __future__ import annotations

import logging

from care_connections.config import Settings
from care_connections.eligibility import EligibilityChecker
from care_connections.errors import (
    AlreadyProcessedError,
    ConnectionAlreadyExistsError,
    DuplicateRequestError,
    InvalidInputError,
    NotFoundError,
    PrerequisiteNotMetError,
    UnauthorizedError,
)
from care_connections.identity import UserDirectory
from care_connections.models.connection_request import (
    ConnectionRequest,
    RequestAction,
    RequestStatus,
    RequestType,
)
from care_connections.models.user import User
from care_connections.notifications import (
    EventType,
    LoggingDispatcher,
    NotificationDispatcher,
    NotificationEvent,
    notify_safely,
)
from care_connections.permissions import PermissionGate
from care_connections.repositories.connection_repository import ConnectionRepository
from care_connections.repositories.request_repository import ConnectionRequestRepository

logger = logging.getLogger(__name__)


class RequestWorkflow:
    """Drives a ConnectionRequest from creation to approval, decline or cancel.

    ``pending`` is the only non-terminal status. Approval creates the
    connection in the same transaction that marks the request approved.
    """

    def __init__(
        self,
        requests: ConnectionRequestRepository,
        connections: ConnectionRepository,
        users: UserDirectory,
        *,
        gate: PermissionGate | None = None,
        eligibility: EligibilityChecker | None = None,
        dispatcher: NotificationDispatcher | None = None,
        settings: Settings | None = None,
    ):
        """Internal constructor; prefer ``create_connection_services`` for public use."""
        self._requests = requests
        self._connections = connections
        self._users = users
        self._gate = gate or PermissionGate()
        self._eligibility = eligibility or EligibilityChecker()
        self._dispatcher = dispatcher or LoggingDispatcher()
        self._settings = settings or Settings()

    # ----------------------------------------------------------- Mutating ops
    def create_request(
        self,
        requester_id: str,
        target_therapist_id: str,
        target_client_id: str | None,
        request_type: RequestType | str,
        message: str | None = None,
    ) -> ConnectionRequest:
        """Create a pending guardian-to-therapist or child-assignment request."""
        request_type = self._parse(RequestType, request_type, "request_type")

        requester = self._require_user(requester_id)
        if not self._gate.can_create_connection_request(requester):
            # Surfaces the specific role or status failure.
            self._eligibility.validate_guardian(requester)
        therapist = self._eligibility.validate_therapist(self._require_user(target_therapist_id))

        child: User | None = None
        if request_type == RequestType.GUARDIAN_CHILD_ASSIGNMENT:
            if not target_client_id:
                raise InvalidInputError(
                    "A child must be selected for a child assignment request.",
                    field="target_client_id",
                )
            child = self._eligibility.validate_child_of(
                self._require_user(target_client_id), requester
            )
        elif target_client_id is not None:
            raise InvalidInputError(
                "Guardian-to-therapist requests cannot target a client.",
                field="target_client_id",
            )
        message = self._normalise_message(message)
        if message is None and child is not None:
            message = f"Guardian requesting to assign child {child.name or child.id} to therapeutic care"

        if self._requests.has_pending(requester.id, therapist.id, target_client_id):
            raise DuplicateRequestError(
                requester_id=requester.id,
                target_therapist_id=therapist.id,
                target_client_id=target_client_id,
            )

        if child is None:
            if self._connections.has_active_connection(requester.id, therapist.id):
                raise ConnectionAlreadyExistsError(
                    "You already have an active connection with this therapist.",
                    guardian_id=requester.id,
                    therapist_id=therapist.id,
                )
        else:
            if not self._connections.has_active_connection(requester.id, therapist.id):
                raise PrerequisiteNotMetError(guardian_id=requester.id, therapist_id=therapist.id)
            if self._connections.has_active_connection(child.id, therapist.id):
                raise ConnectionAlreadyExistsError(
                    "This child is already connected to this therapist.",
                    child_id=child.id,
                    therapist_id=therapist.id,
                )

        request = self._requests.create_pending(
            ConnectionRequest(
                requester_id=requester.id,
                target_therapist_id=therapist.id,
                target_client_id=target_client_id,
                request_type=request_type,
                message=message,
            )
        )
        subjects = (therapist.id,) if child is None else (therapist.id, child.id)
        self._notify(EventType.REQUEST_CREATED, requester.id, subjects, request.id)
        return request

    def process_request(
        self,
        request_id: str,
        action: RequestAction | str,
        acting_user_id: str,
    ) -> bool:
        """Approve or decline a pending request on behalf of its target therapist.

        Returns ``True``; every failure raises its specific error kind.
        """
        action = self._parse(RequestAction, action, "action")
        logger.debug("Processing request %s: %s by %s", request_id, action.value, acting_user_id)
        request = self._require_request(request_id)

        actor = self._users.find_user(acting_user_id)
        if actor is None or not self._gate.can_approve_or_decline(actor, request):
            raise UnauthorizedError(
                "Only the target therapist can process this request.",
                request_id=request_id,
                actor_id=acting_user_id,
            )
        if not request.is_pending:
            raise AlreadyProcessedError(request_id=request_id, status=request.status.value)

        subjects = tuple(
            dict.fromkeys((request.requester_id, request.target_therapist_id, request.client_id))
        )
        if action == RequestAction.APPROVE:
            _, connection = self._requests.approve(request_id, actor.id)
            self._notify(EventType.REQUEST_APPROVED, actor.id, subjects, request_id)
            self._notify(
                EventType.CONNECTION_CREATED,
                actor.id,
                (connection.therapist_id, connection.client_id),
                connection.id,
            )
        else:
            self._requests.decline(request_id, actor.id)
            self._notify(EventType.REQUEST_DECLINED, actor.id, subjects, request_id)
        return True

    def cancel_request(self, request_id: str, requester_id: str) -> bool:
        """Withdraw a pending request; only its requester may do so."""
        request = self._require_request(request_id)
        actor = self._users.find_user(requester_id)
        if actor is None or not self._gate.can_cancel_request(actor, request):
            raise UnauthorizedError(
                "Only the requester can cancel this request.",
                request_id=request_id,
                actor_id=requester_id,
            )
        if not request.is_pending:
            raise AlreadyProcessedError(
                "Only pending requests can be cancelled.",
                request_id=request_id,
                status=request.status.value,
            )

        self._requests.cancel(request_id, actor.id)
        self._notify(EventType.REQUEST_CANCELLED, actor.id, (request.target_therapist_id,), request_id)
        return True

    # ------------------------------------------------------------------ Queries
    def get_request(self, request_id: str) -> ConnectionRequest:
        return self._require_request(request_id)

    def get_pending_requests(self, therapist_id: str) -> list[ConnectionRequest]:
        """Pending requests addressed to ``therapist_id``, newest first."""
        return self._requests.list_pending_for_therapist(therapist_id)

    def get_requester_requests(self, requester_id: str) -> list[ConnectionRequest]:
        return self._requests.list_by_requester(requester_id)

    def get_all_requests(self, status: RequestStatus | str | None = None) -> list[ConnectionRequest]:
        if status is not None:
            status = self._parse(RequestStatus, status, "status")
        return self._requests.list_requests(status)

    def statistics(self) -> dict[str, int]:
        return self._requests.statistics()

    def has_pending_request(self, requester_id: str, target_therapist_id: str) -> bool:
        return self._requests.has_pending(requester_id, target_therapist_id)

    def has_pending_child_assignment(self, guardian_id: str, child_id: str, therapist_id: str) -> bool:
        return self._requests.has_pending(guardian_id, therapist_id, child_id)

    # ----------------------------------------------------------------- Helpers
    def _require_user(self, user_id: str) -> User:
        user = self._users.find_user(user_id)
        if user is None:
            raise NotFoundError(f"User {user_id} does not exist.", user_id=user_id)
        return user

    def _require_request(self, request_id: str) -> ConnectionRequest:
        request = self._requests.get_request(request_id)
        if request is None:
            raise NotFoundError(f"Request {request_id} does not exist.", request_id=request_id)
        return request

    def _normalise_message(self, message: str | None) -> str | None:
        if message is None:
            return None
        message = message.strip()
        if not message:
            return None
        low, high = self._settings.message_min_length, self._settings.message_max_length
        if not low <= len(message) <= high:
            raise InvalidInputError(
                f"Message must be between {low} and {high} characters.",
                field="message",
                length=len(message),
            )
        return message

    @staticmethod
    def _parse(enum_cls, value, field: str):
        try:
            return enum_cls(value)
        except ValueError as exc:
            allowed = ", ".join(member.value for member in enum_cls)
            raise InvalidInputError(
                f"Invalid {field} {value!r}; expected one of: {allowed}.", field=field
            ) from exc

    def _notify(
        self,
        event_type: EventType,
        actor_id: str,
        subject_ids: tuple[str, ...],
        record_id: str,
    ) -> None:
        notify_safely(
            self._dispatcher,
            NotificationEvent(
                event_type=event_type,
                actor_id=actor_id,
                subject_ids=subject_ids,
                connection_or_request_id=record_id,
            ),
        )


__all__ = ["RequestWorkflow"]
