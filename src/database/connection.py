"""Database connection and session management."""

import os
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field

from sqlalchemy import create_engine
from sqlalchemy.engine import URL, Engine
from sqlalchemy.orm import Session, sessionmaker

DEFAULT_DATABASE_NAME = "reminders"
DEFAULT_DATABASE_USER = "app"

# Connections kept open per process; the sweep and the API each hold one session at a time
DEFAULT_POOL_SIZE = 5

# Shown in pg_stat_activity
APPLICATION_NAME = "reminder-service"


def get_database_url() -> URL:
    """Build the PostgreSQL database URL from environment variables.

    :returns: The database connection URL.
    :raises KeyError: If DATABASE_HOST or APP_DB_PASSWORD is not set.
    """
    return URL.create(
        "postgresql+psycopg2",
        username=os.environ.get("DATABASE_USER", DEFAULT_DATABASE_USER),
        password=os.environ["APP_DB_PASSWORD"],
        host=os.environ["DATABASE_HOST"],
        port=int(os.environ.get("DATABASE_PORT", "5432")),
        database=os.environ.get("DATABASE_NAME", DEFAULT_DATABASE_NAME),
    )


def create_db_engine(*, echo: bool = False) -> Engine:
    """Create a SQLAlchemy engine for the database.

    :param echo: If True, log all SQL statements.
    :returns: A configured SQLAlchemy engine.
    """
    return create_engine(
        get_database_url(),
        echo=echo,
        pool_pre_ping=True,
        pool_size=int(os.environ.get("DATABASE_POOL_SIZE", DEFAULT_POOL_SIZE)),
        connect_args={"application_name": APPLICATION_NAME},
    )


@dataclass
class _DatabaseState:
    """Process-wide engine and session factory."""

    engine: Engine | None = field(default=None)
    session_factory: sessionmaker[Session] | None = field(default=None)


_state = _DatabaseState()


def get_engine() -> Engine:
    """Get or create the database engine singleton.

    :returns: The database engine.
    """
    if _state.engine is None:
        _state.engine = create_db_engine()
    return _state.engine


def get_session_factory() -> sessionmaker[Session]:
    """Get or create the session factory singleton.

    Objects stay readable after commit, since the sweep keeps using items
    it has already marked.

    :returns: A sessionmaker bound to the database engine.
    """
    if _state.session_factory is None:
        _state.session_factory = sessionmaker(bind=get_engine(), expire_on_commit=False)
    return _state.session_factory


@contextmanager
def get_session() -> Iterator[Session]:
    """Open a session that commits on success and rolls back on error.

    Callers may also commit part-way through; the sweep commits once per item.

    :yields: A database session.
    """
    session = get_session_factory()()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
