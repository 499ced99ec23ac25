"""Database engine and helpers.

This module configures the SQLModel/SQLAlchemy engine from
`settings.DATABASE_URL` (a local SQLite file by default) and provides the
session helpers used by the application, scripts and tests.
"""

from contextlib import contextmanager

from sqlalchemy import event
from sqlmodel import SQLModel, create_engine, Session

from .config import settings

DB_URL = settings.DATABASE_URL
_connect_args = {"check_same_thread": False} if DB_URL.startswith("sqlite") else {}
engine = create_engine(DB_URL, echo=False, connect_args=_connect_args)


if DB_URL.startswith("sqlite"):
    @event.listens_for(engine, "connect")
    def _enable_sqlite_foreign_keys(dbapi_connection, _record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def create_db_and_tables():
    """Create database tables using SQLModel metadata.

    Intended for local development and tests; production deployments should
    manage the schema with a migration tool (alembic) instead.
    """
    # models must be imported so their tables are registered on the metadata
    from . import models  # noqa: F401
    SQLModel.metadata.create_all(engine)


def get_session():
    """Yield a database `Session` for FastAPI dependency injection.

    The generator yields a session and ensures it is closed when the
    request scope finishes.
    """
    with Session(engine) as session:
        yield session


@contextmanager
def unit_of_work(session: Session):
    """Group several writes into one atomic commit.

    Everything staged on `session` inside the block is committed together
    when the block exits cleanly. Any exception rolls the whole group back
    and is re-raised, so callers never observe a half-applied update.
    """
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
