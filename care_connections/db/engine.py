"""Database engine helpers."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Mapping

from sqlalchemy import create_engine as sa_create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from care_connections.config import Settings

logger = logging.getLogger(__name__)

DEFAULT_SQLITE_URL = "sqlite+pysqlite:///:memory:"


def create_engine(
    connection_string: str | None = None,
    *,
    sqlite_path: str | Path | None = None,
    echo: bool = False,
    connect_args: Mapping[str, Any] | None = None,
) -> Engine:
    """Create a SQLAlchemy engine for the connection tables.

    Parameters
    ----------
    connection_string:
        Full SQLAlchemy URL. Takes precedence over ``sqlite_path``.
    sqlite_path:
        Filesystem path to a SQLite database file. Expanded to an absolute path.
    echo:
        Enable SQLAlchemy engine echo logging.
    connect_args:
        Optional mapping passed through to ``sqlalchemy.create_engine``.

    When neither ``connection_string`` nor ``sqlite_path`` is given an
    in-memory SQLite database is used.
    """
    if connection_string and sqlite_path is not None:
        raise ValueError("Provide either 'connection_string' or 'sqlite_path', not both.")

    if connection_string:
        url = connection_string
    elif sqlite_path is not None:
        db_path = Path(sqlite_path).expanduser().resolve()
        url = f"sqlite+pysqlite:///{db_path.as_posix()}"
    else:
        url = DEFAULT_SQLITE_URL

    engine = sa_create_engine(url, echo=echo, future=True, connect_args=connect_args or {})
    logger.debug("Created engine for dialect %s", engine.dialect.name)
    return engine


def create_engine_from_settings(settings: Settings) -> Engine:
    """Build an engine from library ``Settings``."""
    return create_engine(
        settings.database_url,
        sqlite_path=settings.sqlite_path,
        echo=settings.echo,
    )


def create_session_factory(engine: Engine) -> sessionmaker[Session]:
    """Return a configured session factory bound to the given engine."""
    return sessionmaker(bind=engine, class_=Session, expire_on_commit=False, future=True)


__all__ = [
    "DEFAULT_SQLITE_URL",
    "create_engine",
    "create_engine_from_settings",
    "create_session_factory",
]
