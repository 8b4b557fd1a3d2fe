from datetime import datetime, timezone
from typing import Dict, List, Optional
from sqlalchemy.exc import SQLAlchemyError
from framework.cache import CacheIdentity, QueryCache, make_key
from framework.exceptions.handler import AuthRequiredError, BackendError, NotFoundError, backend_errors
from framework.logging.logger import get_audit_logger
from framework.repository import UnitOfWork
from framework.security import CurrentUser
from apps.identity.repository import TenantRepository
from .access import ACCESS_STATS_VIEW, UNIFIED_ACCESS_VIEW
from .models import TenantModuleAssignment
from .repository import SystemModuleRepository, TenantModuleAssignmentRepository
from .schemas import TenantOverride

logger = get_audit_logger("module_overrides")

TENANT_MODULES_VIEW = "tenant-modules"

# Every view that shows a tenant's module access; written together, invalidated together
OVERRIDE_VIEWS = (TENANT_MODULES_VIEW, ACCESS_STATS_VIEW, UNIFIED_ACCESS_VIEW)


class ModuleOverrideService:
    """Manual module grants that bypass the subscription tier."""

    def __init__(
        self,
        uow: UnitOfWork,
        cache: Optional[QueryCache] = None,
        acting_user: Optional[CurrentUser] = None,
        identity: Optional[CacheIdentity] = None,
    ):
        self.uow = uow
        self.cache = cache
        self.acting_user = acting_user
        self.identity = identity or CacheIdentity.from_user(acting_user)

    def _require_actor(self) -> CurrentUser:
        if self.acting_user is None:
            raise AuthRequiredError("Sign in as an administrator to change module overrides")
        return self.acting_user

    def _invalidate_on_commit(self, tenant_id: int) -> None:
        if self.cache is None:
            return
        cache = self.cache

        async def invalidate():
            removed = await cache.invalidate_views((view, tenant_id) for view in OVERRIDE_VIEWS)
            logger.debug(f"Invalidated {removed} cached entries for tenant {tenant_id}")

        self.uow.after_commit(invalidate)

    async def enable_override(
        self,
        tenant_id: int,
        module_id: int,
        expires_at: Optional[datetime] = None,
        custom_limits: Optional[Dict[str, int]] = None,
    ) -> TenantModuleAssignment:
        actor = self._require_actor()

        with backend_errors("Loading override target"):
            if await self.uow.get_repository(TenantRepository).get_by_id(tenant_id) is None:
                raise NotFoundError(f"Tenant {tenant_id} not found")
            module = await self.uow.get_repository(SystemModuleRepository).get_by_id(module_id)
            if module is None:
                raise NotFoundError(f"Module {module_id} not found")
        # rollback expires loaded rows
        module_name = module.name

        assignment = TenantModuleAssignment(
            tenant_id=tenant_id,
            module_id=module_id,
            is_enabled=True,
            assigned_by=actor.id,
            expires_at=expires_at,
            custom_limits=custom_limits,
        )
        try:
            await self.uow.get_repository(TenantModuleAssignmentRepository).create(assignment)
            self._invalidate_on_commit(tenant_id)
            await self.uow.commit()
        except SQLAlchemyError as e:
            await self.uow.rollback()
            logger.error(f"Enabling module {module_name} for tenant {tenant_id} failed: {e}")
            raise BackendError(f"Failed to enable module {module_name}", detail=str(e)) from e

        logger.info(
            f"Override enabled | tenant={tenant_id} module={module_name} by={actor.id} "
            f"expires_at={expires_at.isoformat() if expires_at else 'never'}"
        )
        return assignment

    async def disable_override(self, assignment_id: int) -> None:
        """Turn an override off; the row stays as history."""
        actor = self._require_actor()
        repo = self.uow.get_repository(TenantModuleAssignmentRepository)

        with backend_errors("Loading override"):
            assignment = await repo.get_by_id(assignment_id)
        if assignment is None:
            raise NotFoundError(f"Override {assignment_id} not found")

        try:
            await repo.update(assignment, is_enabled=False, updated_at=datetime.now(timezone.utc))
            self._invalidate_on_commit(assignment.tenant_id)
            await self.uow.commit()
        except SQLAlchemyError as e:
            await self.uow.rollback()
            logger.error(f"Disabling override {assignment_id} failed: {e}")
            raise BackendError("Failed to disable module override", detail=str(e)) from e

        logger.info(f"Override disabled | id={assignment_id} tenant={assignment.tenant_id} by={actor.id}")

    async def list_overrides(self, tenant_id: int) -> List[TenantOverride]:
        async def load():
            with backend_errors("Listing module overrides"):
                rows = await self.uow.get_repository(TenantModuleAssignmentRepository).list_for_tenant(tenant_id)
                modules = await self.uow.get_repository(SystemModuleRepository).map_by_id({r.module_id for r in rows})
            return [
                TenantOverride(
                    id=row.id,
                    tenant_id=row.tenant_id,
                    module_id=row.module_id,
                    module_name=modules[row.module_id].name if row.module_id in modules else None,
                    is_enabled=row.is_enabled,
                    assigned_by=row.assigned_by,
                    assigned_at=row.assigned_at,
                    expires_at=row.expires_at,
                    custom_limits=row.custom_limits,
                )
                for row in rows
            ]

        if self.cache is None:
            return await load()
        key = make_key(TENANT_MODULES_VIEW, (tenant_id,), self.identity)
        return await self.cache.get_or_load(key, load, schema=List[TenantOverride])
