#!/usr/bin/env python3
"""
Trait Database Client

A low-level wrapper around the SQLAlchemy engine and session factory.
Handles connection management and schema creation.

This client is pure infrastructure - it contains no business logic.
Use the services layer for ingestion logic that uses this client.
"""

import logging

from sqlalchemy import create_engine, event, func, select
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from ..core.config import ingest_config
from ..models.tables import Base

logger = logging.getLogger(__name__)


class DatabaseClient:
    """
    Trait database client owning one engine and its session factory.

    Example:
        ```python
        client = DatabaseClient("sqlite:///./traits.db")
        client.create_all()
        with client.session() as session:
            ...
        client.close()
        ```

    Environment Variables:
        - TRAITS_DATABASE_URL: SQLAlchemy URL (default: sqlite:///./traits.db)
        - TRAITS_DATABASE_ECHO: Log every SQL statement (default: false)
    """

    def __init__(self, url: str = None, echo: bool = None):
        """
        Initialize the client.

        Args:
            url: SQLAlchemy database URL. If None, reads TRAITS_DATABASE_URL.
            echo: Echo SQL statements. If None, reads TRAITS_DATABASE_ECHO.
        """
        self.url = url or ingest_config.DATABASE_URL
        self.echo = ingest_config.DATABASE_ECHO if echo is None else echo
        self.engine = _build_engine(self.url, self.echo)
        self.session_factory = sessionmaker(bind=self.engine, autoflush=False, expire_on_commit=False)

    def create_all(self) -> None:
        """Create any missing tables."""
        Base.metadata.create_all(self.engine)
        logger.info(f"Ensured trait database schema at {self.engine.url.render_as_string(hide_password=True)}")

    def session(self) -> Session:
        """Open a new session. Callers own its transaction and must close it."""
        return self.session_factory()

    def count_rows(self, model) -> int:
        """Count rows of a mapped table; used by health checks and tests."""
        with self.session() as session:
            return session.scalar(select(func.count()).select_from(model))

    def close(self) -> None:
        """Dispose of the engine's connection pool."""
        if self.engine is not None:
            self.engine.dispose()


def _build_engine(url: str, echo: bool) -> Engine:
    if url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if url in ("sqlite://", "sqlite:///:memory:"):
            # One shared connection so every session sees the same in-memory database
            kwargs["poolclass"] = StaticPool
        engine = create_engine(url, echo=echo, **kwargs)
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
        return engine
    return create_engine(url, echo=echo, pool_pre_ping=True)


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()
