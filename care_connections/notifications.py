"""Notification payloads and fire-and-forget dispatch helpers."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Protocol

from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)


class EventType(str, Enum):
    REQUEST_CREATED = "connection_request.created"
    REQUEST_APPROVED = "connection_request.approved"
    REQUEST_DECLINED = "connection_request.declined"
    REQUEST_CANCELLED = "connection_request.cancelled"
    CONNECTION_CREATED = "connection.created"
    CONNECTION_TERMINATED = "connection.terminated"


class NotificationEvent(BaseModel):
    """Payload handed to the dispatcher after a committed state transition."""

    event_type: EventType
    actor_id: str
    subject_ids: tuple[str, ...] = Field(default_factory=tuple)
    connection_or_request_id: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = ConfigDict(frozen=True)


class NotificationDispatcher(Protocol):
    def dispatch(self, event: NotificationEvent) -> None:
        ...


class NullDispatcher:
    """Dispatcher that drops every event."""

    def dispatch(self, event: NotificationEvent) -> None:
        return None


class LoggingDispatcher:
    """Dispatcher that records events in the application log."""

    def __init__(self, level: int = logging.INFO):
        self._level = level

    def dispatch(self, event: NotificationEvent) -> None:
        logger.log(
            self._level,
            "Notification %s by %s for %s (subjects: %s)",
            event.event_type.value,
            event.actor_id,
            event.connection_or_request_id,
            ", ".join(event.subject_ids),
        )


def notify_safely(dispatcher: NotificationDispatcher, event: NotificationEvent) -> bool:
    """Dispatch ``event`` and swallow delivery failures.

    State transitions are already committed when this runs, so a failing
    dispatcher is logged and otherwise ignored. Returns ``True`` on delivery.
    """
    try:
        dispatcher.dispatch(event)
    except Exception:  # noqa: BLE001
        logger.warning(
            "Failed to send %s notification for %s",
            event.event_type.value,
            event.connection_or_request_id,
            exc_info=True,
        )
        return False
    return True


__all__ = [
    "EventType",
    "LoggingDispatcher",
    "NotificationDispatcher",
    "NotificationEvent",
    "NullDispatcher",
    "notify_safely",
]
