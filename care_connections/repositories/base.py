"""Shared helpers for the SQLAlchemy-backed repositories."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import datetime, timezone

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from care_connections.errors import ConnectionWorkflowError, StorageError

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive timestamps; SQLite drops the offset on read."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


@contextmanager
def storage_errors(operation: str) -> Iterator[None]:
    """Translate unexpected SQLAlchemy failures into ``StorageError``."""
    try:
        yield
    except SQLAlchemyError as exc:
        logger.exception("Storage failure during %s", operation)
        raise StorageError(operation=operation) from exc


def commit_or_raise(session: Session, on_conflict: Callable[[], ConnectionWorkflowError]) -> None:
    """Commit ``session``; unique-index violations become ``on_conflict()``."""
    try:
        session.commit()
    except IntegrityError as exc:
        session.rollback()
        raise on_conflict() from exc


__all__ = ["as_utc", "commit_or_raise", "storage_errors", "utcnow"]
