"""Catalog database engine and sessions."""

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import AsyncAdaptedQueuePool

from storefront_feed.config import Settings, get_settings

logger = structlog.get_logger()


class CatalogDatabase:
    """Pooled engine plus the session factory the SQL sources read through.

    The feed only reads, so sessions are never committed.
    """

    def __init__(self, settings: Settings | None = None):
        settings = settings or get_settings()
        self.engine = create_async_engine(
            settings.database_url,
            echo=settings.debug,
            poolclass=AsyncAdaptedQueuePool,
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_pre_ping=True,
            pool_recycle=settings.db_pool_recycle,
        )
        self.session_factory: async_sessionmaker[AsyncSession] = async_sessionmaker(
            self.engine, expire_on_commit=False, autoflush=False
        )
        logger.debug("Catalog engine created", host=settings.postgres_host, db=settings.postgres_db)

    async def dispose(self) -> None:
        await self.engine.dispose()
