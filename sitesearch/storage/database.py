"""
Database engine and session management.

Uses SQLAlchemy's asyncio extension; SQLite through aiosqlite is the default
backend, any async SQLAlchemy URL is accepted.
"""

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Optional

from sqlalchemy import event
from sqlalchemy.engine import make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from .models import Base
from ..utils.config import DatabaseConfig


class DatabaseError(Exception):
    """Raised when a storage operation fails."""
    pass


class DatabaseManager:
    """Owns the engine and hands out transactional sessions."""

    def __init__(self, config: DatabaseConfig):
        self.config = config
        self.engine: Optional[AsyncEngine] = None
        self.session_factory: Optional[async_sessionmaker] = None
        self.logger = logging.getLogger(__name__)

    @property
    def is_sqlite(self) -> bool:
        return make_url(self.config.url).get_backend_name() == 'sqlite'

    async def initialize(self):
        """Create the engine and the schema."""
        url = make_url(self.config.url)
        connect_args = {}

        if self.is_sqlite:
            if url.database and url.database != ':memory:':
                Path(url.database).parent.mkdir(parents=True, exist_ok=True)
            connect_args['timeout'] = 30

        try:
            self.engine = create_async_engine(
                self.config.url,
                echo=self.config.echo,
                connect_args=connect_args
            )

            if self.is_sqlite:
                event.listen(self.engine.sync_engine, 'connect', _set_sqlite_pragma)

            self.session_factory = async_sessionmaker(self.engine, expire_on_commit=False)

            async with self.engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)

        except SQLAlchemyError as e:
            raise DatabaseError(f"Failed to initialize database: {e}") from e

        self.logger.info(f"Database initialized: {url.render_as_string(hide_password=True)}")

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[AsyncSession]:
        """
        Session wrapped in one transaction.

        Commits on normal exit and rolls back on any exception, including
        cancellation. SQLAlchemy errors are re-raised as DatabaseError.
        """
        if not self.session_factory:
            raise DatabaseError("Database not initialized")

        try:
            async with self.session_factory() as session:
                async with session.begin():
                    yield session
        except SQLAlchemyError as e:
            raise DatabaseError(str(e)) from e

    async def close(self):
        """Dispose of the engine."""
        if self.engine:
            await self.engine.dispose()
            self.engine = None
            self.session_factory = None
            self.logger.info("Database connections closed")


def _set_sqlite_pragma(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.close()
