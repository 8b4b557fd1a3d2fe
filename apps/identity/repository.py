"""Identity module repository implementations."""

from typing import Optional
from sqlmodel import select
from framework.repository.base import BaseRepository
from .models import Tenant, UserTenant


class TenantRepository(BaseRepository[Tenant]):
    """Tenant repository."""

    def __init__(self, session):
        super().__init__(session, Tenant)

    async def lock(self, tenant_id: int) -> Optional[Tenant]:
        """SELECT ... FOR UPDATE on the tenant row; held until commit or rollback."""
        result = await self.session.exec(select(Tenant).where(Tenant.id == tenant_id).with_for_update())
        return result.first()


class UserTenantRepository(BaseRepository[UserTenant]):
    """Tenant membership repository."""

    def __init__(self, session):
        super().__init__(session, UserTenant)

    async def is_member(self, user_id: int, tenant_id: int) -> bool:
        return await self.find_one(user_id=user_id, tenant_id=tenant_id) is not None
