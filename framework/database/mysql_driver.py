from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel.ext.asyncio.session import AsyncSession
from .base import BaseDatabaseDriver

class MySQLDriver(BaseDatabaseDriver):
    def __init__(self, url: str, pool_recycle: int = 1800, **engine_kwargs):
        engine_kwargs.setdefault("pool_pre_ping", True)
        if url.startswith("mysql"):
            engine_kwargs.setdefault("pool_recycle", pool_recycle)
        self.engine = create_async_engine(url, echo=False, future=True, **engine_kwargs)
        self.session_factory = sessionmaker(
            self.engine, class_=AsyncSession, expire_on_commit=False
        )

    async def connect(self):
        """Verify the engine can reach the database."""
        async with self.engine.begin() as conn:
            await conn.execute(text("SELECT 1"))

    async def disconnect(self):
        await self.engine.dispose()

    async def ping(self) -> bool:
        try:
            await self.connect()
            return True
        except SQLAlchemyError:
            return False

    async def get_session(self):
        async with self.session_factory() as session:
            yield session
