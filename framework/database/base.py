from abc import ABC, abstractmethod

class BaseDatabaseDriver(ABC):
    """Lifecycle contract shared by the SQL store and the query cache."""

    @abstractmethod
    async def connect(self):
        pass

    @abstractmethod
    async def disconnect(self):
        pass

    @abstractmethod
    async def ping(self) -> bool:
        """Return True when the backend answers."""
        pass
