"""
Repository abstract base class and generic implementation.
"""

from abc import ABC, abstractmethod
from typing import Generic, TypeVar, Optional, List, Type, Any, Sequence
from sqlmodel import SQLModel, select
from sqlmodel.ext.asyncio.session import AsyncSession

T = TypeVar("T", bound=SQLModel)


class IRepository(ABC, Generic[T]):
    """Repository interface; row-level select/insert/update over one table."""

    @abstractmethod
    async def get_by_id(self, id: int) -> Optional[T]:
        """Get entity by ID."""
        pass

    @abstractmethod
    async def find_all(self, order_by: Sequence[Any] = (), limit: Optional[int] = None, **filters) -> List[T]:
        """Select rows matching equality filters."""
        pass

    @abstractmethod
    async def create(self, entity: T) -> T:
        """Insert entity."""
        pass

    @abstractmethod
    async def update(self, entity: T, **patch) -> T:
        """Apply patch to entity."""
        pass


class BaseRepository(IRepository[T]):
    """Generic select/insert/update over one SQLModel table; subclasses add domain queries.

    Filters are equality predicates on model columns; a value of ``None`` means
    ``IS NULL``. Unknown filter names raise ``AttributeError`` rather than being
    ignored, so a typo can never widen a tenant-scoped query.
    """

    def __init__(self, session: AsyncSession, model: Type[T]):
        self.session = session
        self.model = model

    def _where(self, statement, filters: dict):
        for key, value in filters.items():
            column = getattr(self.model, key)
            statement = statement.where(column.is_(None) if value is None else column == value)
        return statement

    async def get_by_id(self, id: int) -> Optional[T]:
        return await self.session.get(self.model, id)

    async def find_all(self, order_by: Sequence[Any] = (), limit: Optional[int] = None, **filters) -> List[T]:
        statement = self._where(select(self.model), filters)
        if order_by:
            statement = statement.order_by(*order_by)
        if limit is not None:
            statement = statement.limit(limit)
        result = await self.session.exec(statement)
        return list(result.all())

    async def find_one(self, **filters) -> Optional[T]:
        """First matching row or None (no uniqueness check)."""
        statement = self._where(select(self.model), filters).limit(1)
        result = await self.session.exec(statement)
        return result.first()

    async def maybe_single(self, **filters) -> Optional[T]:
        """Zero rows -> None; more than one row raises MultipleResultsFound."""
        statement = self._where(select(self.model), filters)
        result = await self.session.exec(statement)
        return result.one_or_none()

    async def single(self, **filters) -> T:
        """Exactly one row; raises NoResultFound / MultipleResultsFound otherwise."""
        statement = self._where(select(self.model), filters)
        result = await self.session.exec(statement)
        return result.one()

    async def create(self, entity: T) -> T:
        self.session.add(entity)
        return entity

    async def update(self, entity: T, **patch) -> T:
        for key, value in patch.items():
            if not hasattr(entity, key):
                raise AttributeError(f"{self.model.__name__} has no field {key!r}")
            setattr(entity, key, value)
        self.session.add(entity)
        return entity
