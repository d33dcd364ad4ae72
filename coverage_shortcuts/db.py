"""Database plumbing for the build ledger.

One engine is shared by the request handlers and both sync loops, so
SQLite files are opened for cross-thread use and switched to WAL mode,
letting readers proceed while a refresh transaction is writing.
"""

from collections.abc import Generator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from sqlalchemy import Engine, create_engine, event, make_url
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from coverage_shortcuts.config import get_settings

# Seconds a SQLite connection waits on a locked database before failing
SQLITE_BUSY_TIMEOUT = 30


class Base(DeclarativeBase):
    """Declarative base for the ledger tables."""

    pass


def _enable_wal(dbapi_connection: Any, connection_record: Any) -> None:
    cursor = dbapi_connection.cursor()
    try:
        cursor.execute("PRAGMA journal_mode=WAL")
    finally:
        cursor.close()


def get_engine(db_url: str | None = None) -> Engine:
    """Create the engine for the ledger database.

    For a SQLite file the parent directory is created if missing.

    Args:
        db_url: Database URL; the configured ``db_url`` when omitted.

    Returns:
        SQLAlchemy Engine.
    """
    if db_url is None:
        db_url = get_settings().db_url

    url = make_url(db_url)
    if url.get_backend_name() != "sqlite":
        return create_engine(url)

    engine = create_engine(
        url,
        connect_args={
            "check_same_thread": False,
            "timeout": SQLITE_BUSY_TIMEOUT,
        },
    )
    if url.database and url.database != ":memory:":
        Path(url.database).parent.mkdir(parents=True, exist_ok=True)
        event.listen(engine, "connect", _enable_wal)
    return engine


def get_session_factory(engine: Engine) -> sessionmaker[Session]:
    """Create the session factory bound to ``engine``.

    Objects stay loaded after commit so that builds handed out by the
    store remain usable once their session is closed.
    """
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@contextmanager
def get_session(
    session_factory: sessionmaker[Session],
) -> Generator[Session, None, None]:
    """Run a block in one session: commit on success, roll back on any error.

    Yields:
        SQLAlchemy Session instance.
    """
    session = session_factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def create_all_tables(engine: Engine) -> None:
    """Create the ``builds`` and ``artifacts`` tables if they do not exist."""
    # Importing the models registers their tables on Base.metadata
    from coverage_shortcuts.builds import models  # noqa: F401

    Base.metadata.create_all(bind=engine)


__all__ = [
    "Base",
    "SQLITE_BUSY_TIMEOUT",
    "create_all_tables",
    "get_engine",
    "get_session",
    "get_session_factory",
]
