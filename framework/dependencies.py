"""
FastAPI dependencies shared by every router.
"""

from fastapi import Depends
from sqlmodel.ext.asyncio.session import AsyncSession
from framework.config import settings
from framework.cache import QueryCache
from framework.database.manager import DatabaseManager
from framework.repository import UnitOfWork


async def get_db():
    """Get database session."""
    manager = DatabaseManager.get_instance()
    async for session in manager.mysql.get_session():
        yield session


def get_uow(
    db: AsyncSession = Depends(get_db)
) -> UnitOfWork:
    """Dependency: create UnitOfWork."""
    return UnitOfWork(session=db)


async def get_query_cache() -> QueryCache:
    """Dependency: query cache on the shared Redis client."""
    manager = DatabaseManager.get_instance()
    if not manager.redis.get_client():
        await manager.redis.connect()
    return QueryCache(
        manager.redis.get_client(),
        prefix=settings.QUERY_CACHE_PREFIX,
        ttl=settings.QUERY_CACHE_TTL_SECONDS,
    )
