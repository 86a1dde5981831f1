"""Database configuration and session management.

This module provides SQLAlchemy engine and async session management for the
SQL persistence adapter.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from ctxforge.config import ContextSettings
from ctxforge.storage.base_model import Base


class DatabaseConfig:
    """Database configuration.

    Attributes:
        url: Async database connection URL
        echo: Whether to log SQL statements (default: False)
        pool_size: Connection pool size (default: 5)
        max_overflow: Maximum overflow connections (default: 10)
    """

    def __init__(
        self,
        url: str = "sqlite+aiosqlite:///:memory:",
        echo: bool = False,
        pool_size: int = 5,
        max_overflow: int = 10,
    ):
        self.url = url
        self.echo = echo
        self.pool_size = pool_size
        self.max_overflow = max_overflow

    @classmethod
    def from_settings(cls, settings: ContextSettings) -> "DatabaseConfig":
        return cls(url=settings.database_url)


class Database:
    """Async database connection and session manager.

    Example:
        >>> db = Database(DatabaseConfig(url="sqlite+aiosqlite:///./contexts.db"))
        >>> await db.create_tables()
        >>> async with db.session() as session:
        ...     await session.get(ContextMemoryModel, "todo:A")
    """

    def __init__(self, config: Optional[DatabaseConfig] = None):
        """Initialize database with configuration.

        Args:
            config: Database configuration (defaults to in-memory SQLite)
        """
        self.config = config or DatabaseConfig()

        engine_kwargs = {"echo": self.config.echo}
        if "sqlite" not in self.config.url:
            # Pool settings do not apply to SQLite
            engine_kwargs["pool_size"] = self.config.pool_size
            engine_kwargs["max_overflow"] = self.config.max_overflow

        self.engine = create_async_engine(self.config.url, **engine_kwargs)
        self.session_factory = async_sessionmaker(
            self.engine, class_=AsyncSession, expire_on_commit=False
        )

    async def create_tables(self) -> None:
        """Create all tables defined in ORM models."""
        from ctxforge.storage.model_registry import register_all_models

        register_all_models()

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def drop_tables(self) -> None:
        """Drop all tables defined in ORM models."""
        from ctxforge.storage.model_registry import register_all_models

        register_all_models()

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Create a new database session, committing on success.

        Yields:
            Async database session
        """
        async with self.session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def close(self) -> None:
        """Close database engine and connections."""
        await self.engine.dispose()

    async def health_check(self) -> bool:
        """Check database connectivity.

        Returns:
            True if database is healthy
        """
        async with self.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True
