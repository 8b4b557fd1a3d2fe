from enum import Enum
from typing import Optional
from framework.cache import QueryCache, CacheIdentity
from framework.exceptions.handler import BusinessException, NotFoundError
from framework.logging.logger import get_audit_logger
from framework.repository import UnitOfWork
from framework.security import CurrentUser
from .models import Tenant
from .repository import TenantRepository, UserTenantRepository

logger = get_audit_logger("session_service")


class AuthEvent(str, Enum):
    """Auth provider events that change who the cache is serving."""
    SIGNED_IN = "SIGNED_IN"
    SIGNED_OUT = "SIGNED_OUT"
    TOKEN_REFRESHED = "TOKEN_REFRESHED"


class SessionService:
    """Tenant context of the acting user and the cache policies tied to identity changes."""

    def __init__(self, uow: UnitOfWork, cache: Optional[QueryCache] = None):
        self.uow = uow
        self.cache = cache

    async def ensure_tenant_access(self, user: CurrentUser, tenant_id: int) -> Tenant:
        tenant_repo = self.uow.get_repository(TenantRepository)
        membership_repo = self.uow.get_repository(UserTenantRepository)

        tenant = await tenant_repo.get_by_id(tenant_id)
        if tenant is None:
            raise NotFoundError(f"Tenant {tenant_id} not found")
        if not tenant.is_active:
            raise BusinessException(f"Tenant {tenant.name} is inactive", code=400)

        allowed = (
            user.is_superadmin
            or user.tenant_id == tenant_id
            or await membership_repo.is_member(user.id, tenant_id)
        )
        if not allowed:
            raise BusinessException("Not a member of this tenant", status_code=403, code=403)
        return tenant

    async def resolve_active_tenant(self, user: CurrentUser, requested: Optional[str]) -> Optional[int]:
        """Tenant selected via X-Tenant-ID, else the token's tenant."""
        if not requested:
            return user.tenant_id
        try:
            tenant_id = int(requested)
        except ValueError:
            raise BusinessException(f"Invalid tenant id: {requested}", code=400)
        if tenant_id != user.tenant_id:
            await self.ensure_tenant_access(user, tenant_id)
        return tenant_id

    async def handle_auth_event(self, event: AuthEvent, user: Optional[CurrentUser] = None) -> int:
        """A changed identity invalidates the basis of every cached entry: clear it all."""
        removed = await self.cache.clear()
        logger.info(
            f"Auth event {event.value} for user {user.id if user else 'anonymous'}: "
            f"cleared {removed} cache entries"
        )
        return removed

    async def switch_tenant(self, user: CurrentUser, tenant_id: int) -> CacheIdentity:
        """Move user to another tenant; only their tenant-scoped entries are dropped."""
        await self.ensure_tenant_access(user, tenant_id)
        removed = await self.cache.invalidate_tenant_scoped(user.id)
        logger.info(f"User {user.id} switched to tenant {tenant_id}: dropped {removed} tenant-scoped entries")
        return CacheIdentity.from_user(user, tenant_id=tenant_id)
