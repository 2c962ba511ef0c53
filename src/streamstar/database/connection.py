"""
StreamStar Database Connection Manager
Async database connections for PostgreSQL and, when distributed locking is on, Redis
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

import redis.asyncio as redis
from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    create_async_engine,
    async_sessionmaker
)
from sqlalchemy.orm import declarative_base

from ..core.config import get_settings
from ..core.locks import GenerationLockManager, LocalLockManager, RedisLockManager
from ..core.logging import performance_logger

settings = get_settings()

# SQLAlchemy base for models
Base = declarative_base()


class DatabaseManager:
    """Manages database connections, sessions and the generation lock backend"""

    def __init__(self):
        self._engine: Optional[AsyncEngine] = None
        self._session_factory: Optional[async_sessionmaker] = None
        self._redis_pool: Optional[redis.ConnectionPool] = None
        self._redis: Optional[redis.Redis] = None
        self._lock_manager: Optional[GenerationLockManager] = None

    async def initialize(self, database_url: Optional[str] = None) -> None:
        """Initialize database connections"""
        url = database_url or settings.DATABASE_URL

        engine_options = {"echo": settings.DEBUG, "pool_pre_ping": True}
        if not url.startswith("sqlite"):
            engine_options.update(
                pool_size=settings.DATABASE_POOL_SIZE,
                max_overflow=settings.DATABASE_MAX_OVERFLOW,
            )

        self._engine = create_async_engine(url, **engine_options)
        self._session_factory = async_sessionmaker(
            self._engine,
            class_=AsyncSession,
            expire_on_commit=False
        )

        if settings.GENERATION_LOCK_BACKEND == "redis":
            self._redis_pool = redis.ConnectionPool.from_url(
                settings.REDIS_URL,
                max_connections=20,
                retry_on_timeout=True
            )
            self._redis = redis.Redis(connection_pool=self._redis_pool)
            self._lock_manager = RedisLockManager(
                self._redis, timeout=settings.GENERATION_LOCK_TIMEOUT_SECONDS
            )
        else:
            self._lock_manager = LocalLockManager()

        await self.check_health()

    async def close(self) -> None:
        """Close database connections"""
        if self._engine:
            await self._engine.dispose()

        if self._redis_pool:
            await self._redis_pool.disconnect()

    @property
    def session_factory(self) -> async_sessionmaker:
        if not self._session_factory:
            raise RuntimeError("Database not initialized")
        return self._session_factory

    @property
    def lock_manager(self) -> GenerationLockManager:
        if not self._lock_manager:
            raise RuntimeError("Database not initialized")
        return self._lock_manager

    @asynccontextmanager
    async def get_session(self) -> AsyncGenerator[AsyncSession, None]:
        """Get async database session"""
        async with self.session_factory() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise

    async def check_health(self) -> bool:
        """Check database health"""
        try:
            async with self.get_session() as session:
                result = await session.execute(text("SELECT 1"))
                result.fetchone()

            if self._redis:
                await self._redis.ping()

            return True

        except Exception as e:
            performance_logger.logger.error(f"Database health check failed: {e}")
            return False


# Global database manager instance
database_manager = DatabaseManager()
