"""Startup helpers for bootstrapping the database and workflow services."""

from __future__ import annotations

import logging

from care_connections.config import Settings
from care_connections.db.engine import create_engine_from_settings, create_session_factory
from care_connections.db.schema import create_all
from care_connections.identity import UserDirectory
from care_connections.notifications import NotificationDispatcher
from care_connections.workflow.factory import ConnectionServices, create_connection_services

LOG_FORMAT = "[%(levelname)s] %(name)s: %(message)s"


def configure_logging(level: str | int = logging.INFO) -> None:
    """Configure root logging for scripts embedding the workflow."""
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
    logging.basicConfig(level=level, format=LOG_FORMAT)


def bootstrap(
    users: UserDirectory,
    *,
    settings: Settings | None = None,
    dispatcher: NotificationDispatcher | None = None,
) -> ConnectionServices:
    """Create the engine and tables described by ``settings`` and return the services.

    Tables are created if missing; existing data is left untouched. The
    ``care_connections`` logger is set to ``settings.log_level``.
    """
    settings = settings or Settings()
    logging.getLogger("care_connections").setLevel(settings.log_level)
    engine = create_engine_from_settings(settings)
    create_all(engine)
    session_factory = create_session_factory(engine)
    return create_connection_services(
        session_factory,
        users,
        dispatcher=dispatcher,
        settings=settings,
    )


__all__ = ["LOG_FORMAT", "bootstrap", "configure_logging"]
