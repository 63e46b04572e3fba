"""Structured error kinds raised by the connection workflow."""

from __future__ import annotations

from typing import Any


class ConnectionWorkflowError(RuntimeError):
    """Base class for every error surfaced by the connection workflow.

    Each subclass carries a stable ``code`` so the web layer can map it to a
    form error without parsing the message. ``details`` holds the identifiers
    involved in the failure.
    """

    code = "CONNECTION_ERROR"
    default_message = "The connection operation could not be completed."

    def __init__(self, message: str | None = None, **details: Any):
        self.message = message or self.default_message
        self.details: dict[str, Any] = details
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message, "details": dict(self.details)}


class InvalidRoleError(ConnectionWorkflowError):
    code = "INVALID_ROLE"
    default_message = "User does not hold the role required for this operation."


class InactiveUserError(ConnectionWorkflowError):
    code = "INACTIVE_USER"
    default_message = "User account is not active."


class OwnershipError(ConnectionWorkflowError):
    code = "NOT_CHILD_GUARDIAN"
    default_message = "You may only assign your own children."


class DuplicateConnectionError(ConnectionWorkflowError):
    code = "DUPLICATE_CONNECTION"
    default_message = "An active connection already exists between these users."


class ConnectionAlreadyExistsError(DuplicateConnectionError):
    code = "CONNECTION_ALREADY_EXISTS"


class DuplicateRequestError(ConnectionWorkflowError):
    code = "DUPLICATE_REQUEST"
    default_message = "A pending request already exists for this therapist."


class PrerequisiteNotMetError(ConnectionWorkflowError):
    code = "GUARDIAN_NOT_CONNECTED"
    default_message = (
        "You must have an active connection with this therapist before assigning children."
    )


class UnauthorizedError(ConnectionWorkflowError):
    code = "UNAUTHORIZED"
    default_message = "You are not allowed to perform this action."


class AlreadyProcessedError(ConnectionWorkflowError):
    code = "REQUEST_ALREADY_PROCESSED"
    default_message = "Request has already been processed."


class AlreadyTerminatedError(ConnectionWorkflowError):
    code = "CONNECTION_ALREADY_TERMINATED"
    default_message = "Connection is already terminated."


class NotFoundError(ConnectionWorkflowError):
    code = "NOT_FOUND"
    default_message = "The requested record does not exist."


class InvalidInputError(ConnectionWorkflowError):
    code = "VALIDATION_FAILED"
    default_message = "The provided data is invalid."


class StorageError(ConnectionWorkflowError):
    """Unexpected persistence failure; callers should treat it as internal."""

    code = "INTERNAL_ERROR"
    default_message = "An internal error occurred. Please try again later."


__all__ = [
    "AlreadyProcessedError",
    "AlreadyTerminatedError",
    "ConnectionAlreadyExistsError",
    "ConnectionWorkflowError",
    "DuplicateConnectionError",
    "DuplicateRequestError",
    "InactiveUserError",
    "InvalidInputError",
    "InvalidRoleError",
    "NotFoundError",
    "OwnershipError",
    "PrerequisiteNotMetError",
    "StorageError",
    "UnauthorizedError",
]
