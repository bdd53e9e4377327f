"""Database session management for MCP Sandbox."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from mcp_sandbox.config import get_settings
from mcp_sandbox.models.base import Base
from mcp_sandbox.utils import get_logger

logger = get_logger(__name__)


def build_db_url(state_db: str) -> str:
    """
    Convert a configured state database path into an async SQLite URL.

    Args:
        state_db: File path, ``:memory:`` or ``sqlite://`` URL

    Returns:
        URL usable with the aiosqlite driver
    """
    if state_db.startswith("sqlite+aiosqlite://"):
        return state_db
    if state_db.startswith("sqlite"):
        return state_db.replace("sqlite://", "sqlite+aiosqlite://", 1)
    return f"sqlite+aiosqlite:///{state_db}"


class DatabaseManager:
    """Manages database connections and sessions."""

    def __init__(self, db_url: str | None = None) -> None:
        """
        Initialize database manager.

        Args:
            db_url: Explicit database URL (defaults to the configured state database)
        """
        self._engine: AsyncEngine | None = None
        self._session_maker: async_sessionmaker[AsyncSession] | None = None
        self.db_url = db_url or build_db_url(get_settings().state_db)

    def get_engine(self) -> AsyncEngine:
        """
        Get or create async database engine.

        Returns:
            AsyncEngine instance
        """
        if self._engine is None:
            kwargs = {}
            if ":memory:" in self.db_url:
                # Every connection to an in-memory database is a fresh database
                kwargs["poolclass"] = StaticPool
                kwargs["connect_args"] = {"check_same_thread": False}

            self._engine = create_async_engine(self.db_url, echo=False, **kwargs)
            logger.info("Database engine created", extra={"db_url": self.db_url})

        return self._engine

    def get_session_maker(self) -> async_sessionmaker[AsyncSession]:
        """
        Get or create session maker.

        Returns:
            async_sessionmaker instance
        """
        if self._session_maker is None:
            self._session_maker = async_sessionmaker(
                self.get_engine(),
                class_=AsyncSession,
                expire_on_commit=False,
            )

        return self._session_maker

    async def create_tables(self) -> None:
        """Create all database tables."""
        async with self.get_engine().begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables created")

    async def close(self) -> None:
        """Close database engine."""
        if self._engine:
            await self._engine.dispose()
            self._engine = None
            self._session_maker = None
            logger.info("Database engine closed")

    @asynccontextmanager
    async def get_session(self) -> AsyncGenerator[AsyncSession, None]:
        """
        Get an async database session that commits on success.

        Yields:
            AsyncSession instance
        """
        session_maker = self.get_session_maker()
        async with session_maker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise


_db_manager: DatabaseManager | None = None


def get_db_manager() -> DatabaseManager:
    """
    Get global database manager instance.

    Returns:
        DatabaseManager instance
    """
    global _db_manager
    if _db_manager is None:
        _db_manager = DatabaseManager()
    return _db_manager


async def init_db() -> None:
    """Initialize database (create tables)."""
    await get_db_manager().create_tables()


async def close_db() -> None:
    """Close database connection."""
    global _db_manager
    if _db_manager:
        await _db_manager.close()
        _db_manager = None
