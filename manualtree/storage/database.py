"""Engine and session management for the manual store."""

import logging
from contextlib import contextmanager
from typing import Any, Generator

from sqlalchemy import create_engine, event, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from manualtree.config import get_settings
from manualtree.models import Base

logger = logging.getLogger(__name__)


class Database:
    """Owns the engine and hands out transactional sessions.

    Works against PostgreSQL in production and SQLite (file or in-memory)
    for development and tests.
    """

    def __init__(
        self,
        database_url: str | None = None,
        pool_size: int | None = None,
        max_overflow: int | None = None,
    ):
        """
        Create the engine for a database URL.

        Args:
            database_url: SQLAlchemy URL; settings are used when omitted
            pool_size: Pooled connections kept open; settings when omitted
            max_overflow: Extra connections allowed past pool_size; settings when omitted
        """
        settings = get_settings()
        database_url = database_url or settings.get_database_url()
        pool_size = settings.db_pool_size if pool_size is None else pool_size
        max_overflow = settings.db_max_overflow if max_overflow is None else max_overflow

        self.database_url = database_url
        is_sqlite = database_url.startswith("sqlite")

        engine_kwargs: dict[str, Any] = {
            "pool_pre_ping": True,
            "echo": settings.sql_echo,
        }
        if is_sqlite:
            engine_kwargs["connect_args"] = {"check_same_thread": False}
        if ":memory:" not in database_url:
            engine_kwargs.update(
                pool_size=pool_size,
                max_overflow=max_overflow,
                pool_timeout=settings.db_pool_timeout,
            )
        self.engine = create_engine(database_url, **engine_kwargs)

        if is_sqlite:
            # Cascade deletes rely on foreign keys; SQLite enforces them per connection
            @event.listens_for(self.engine, "connect")
            def enable_foreign_keys(dbapi_conn, connection_record):
                cursor = dbapi_conn.cursor()
                cursor.execute("PRAGMA foreign_keys=ON")
                cursor.close()

        self.SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)

    def create_tables(self) -> None:
        """Create every manual, section and policy table that does not exist yet."""
        Base.metadata.create_all(bind=self.engine)

    def drop_tables(self) -> None:
        Base.metadata.drop_all(bind=self.engine)

    @contextmanager
    def session(self) -> Generator[Session, None, None]:
        """
        Open a session for one unit of work.

        Whatever the block leaves pending is committed on exit; an exception
        rolls the session back and propagates. Services commit their own
        structural writes, so the final commit is usually a no-op.

        Usage:
            with db.session() as session:
                SectionService(session).move_section(...)
        """
        session = self.SessionLocal()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def ping(self) -> bool:
        """Check that a connection can be opened and queried."""
        try:
            with self.engine.connect() as connection:
                connection.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError as e:
            logger.warning("Database ping failed: %s", e)
            return False

    def dispose(self) -> None:
        """Close all pooled connections."""
        self.engine.dispose()


_db: Database | None = None


def get_db(database_url: str | None = None) -> Database:
    """
    Return the process-wide database, creating it on first use.

    Args:
        database_url: Only honored by the call that creates the instance
    """
    global _db
    if _db is None:
        _db = Database(database_url)
    return _db


def reset_db() -> None:
    """Dispose of the process-wide database so the next get_db() starts fresh."""
    global _db
    if _db is not None:
        _db.dispose()
    _db = None
