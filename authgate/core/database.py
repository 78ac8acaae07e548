"""Async database engine and session management.

The engine is owned by a ``Database`` object that the application builds
at startup (see ``authgate.main.lifespan``) and disposes at shutdown.
Request handlers reach it through the ``get_db`` dependency, never through
a module-level handle.
"""

from collections.abc import AsyncGenerator

from fastapi import Request
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)


class Database:
    """Engine plus session factory for one database URL.

    Attributes:
        url: SQLAlchemy async database URL.
        engine: Async engine (connection pool).
        session_factory: Factory producing ``AsyncSession`` objects.
    """

    def __init__(self, url: str, *, echo: bool = False) -> None:
        self.url = url
        self.engine: AsyncEngine = create_async_engine(
            url,
            echo=echo,
            pool_pre_ping=True,
        )
        self.session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Yield a session, rolling back on error."""
        async with self.session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def dispose(self) -> None:
        """Close every pooled connection."""
        await self.engine.dispose()


async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """Dependency that provides a database session."""
    database: Database = request.app.state.database
    async for session in database.session():
        yield session
