from .mysql_driver import MySQLDriver
from .redis_driver import RedisDriver

class DatabaseManager:
    """Process-wide holder of the SQL engine and the Redis client."""
    _instance = None

    def __init__(self, settings):
        self.mysql = MySQLDriver(settings.DATABASE_URL, pool_recycle=settings.DB_POOL_RECYCLE_SECONDS)
        self.redis = RedisDriver(settings.REDIS_URL)

    @classmethod
    def get_instance(cls, settings=None):
        if cls._instance is None:
            if settings is None:
                from framework.config import settings as app_settings
                settings = app_settings
            cls._instance = cls(settings)
        return cls._instance

    @classmethod
    def reset_instance(cls):
        cls._instance = None

    async def connect_all(self):
        await self.mysql.connect()
        await self.redis.connect()

    async def disconnect_all(self):
        await self.redis.disconnect()
        await self.mysql.disconnect()

    async def ping_all(self) -> dict:
        return {"database": await self.mysql.ping(), "redis": await self.redis.ping()}
