# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Roster database connection management using SQLAlchemy async.

The roster database holds organizations, classes, sections and users.
A RosterDatabase is created during application start-up, connected, and
closed at shutdown. Nothing connects at import time.

Uses SQLAlchemy 2.0 async API with asyncpg driver.

Example:
    database = RosterDatabase(settings)
    await database.connect()

    async with database.session() as session:
        result = await session.execute(select(Section))

    await database.close()
"""

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, AsyncIterator, Optional

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

if TYPE_CHECKING:
    from src.core.config.settings import Settings


class DatabaseError(Exception):
    """Base exception for database operations.

    Attributes:
        message: Human-readable error description.
        original_error: The underlying SQLAlchemy or database error.
    """

    def __init__(self, message: str, original_error: Optional[Exception] = None) -> None:
        super().__init__(message)
        self.message = message
        self.original_error = original_error

    def __str__(self) -> str:
        if self.original_error:
            return f"{self.message}: {self.original_error}"
        return self.message


class RosterDatabase:
    """Owns the engine and sessionmaker for the roster database.

    Attributes:
        _settings: Application settings.
        _engine: Async engine, set by connect().
        _sessionmaker: Session factory, set by connect().
    """

    def __init__(self, settings: "Settings") -> None:
        self._settings = settings
        self._engine: Optional[AsyncEngine] = None
        self._sessionmaker: Optional[async_sessionmaker[AsyncSession]] = None

    async def connect(self) -> None:
        """Create the connection pool.

        Raises:
            DatabaseError: If connection pool creation fails.
        """
        if self._engine is not None:
            return

        try:
            self._engine = create_async_engine(
                self._settings.database.url,
                pool_size=self._settings.database.pool_size,
                max_overflow=self._settings.database.max_overflow,
                pool_pre_ping=True,
                pool_recycle=1800,
                echo=False,
            )
            self._sessionmaker = async_sessionmaker(
                bind=self._engine,
                class_=AsyncSession,
                expire_on_commit=False,
                autoflush=False,
            )
        except SQLAlchemyError as e:
            raise DatabaseError("Failed to initialize roster database connection", e) from e

    async def close(self) -> None:
        """Dispose of the connection pool."""
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None
            self._sessionmaker = None

    @property
    def sessionmaker(self) -> async_sessionmaker[AsyncSession]:
        """Session factory for the roster database.

        Raises:
            DatabaseError: If the database has not been connected.
        """
        if self._sessionmaker is None:
            raise DatabaseError("Roster database not connected. Call connect() first.")
        return self._sessionmaker

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        """Get an async session that commits on success.

        The session is rolled back on exception. SQLAlchemy errors are
        wrapped in DatabaseError; other exceptions propagate unchanged.

        Yields:
            AsyncSession for database operations.
        """
        async with self.sessionmaker() as session:
            try:
                yield session
                await session.commit()
            except SQLAlchemyError as e:
                await session.rollback()
                raise DatabaseError("Database operation failed", e) from e
            except Exception:
                await session.rollback()
                raise

    async def check_connection(self) -> bool:
        """Check if the database is reachable.

        Returns:
            True if the database is reachable, False otherwise.
        """
        if self._engine is None:
            return False

        try:
            async with self._engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError:
            return False
