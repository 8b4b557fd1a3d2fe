"""Subscription module repository implementations."""

from datetime import datetime
from typing import Dict, List, Optional
from sqlmodel import select, delete, or_
from framework.repository.base import BaseRepository
from .models import (
    SystemModule,
    SubscriptionPlan,
    SubscriptionStatus,
    TenantSubscription,
    ModulePermission,
    TenantModuleAssignment,
)


class SystemModuleRepository(BaseRepository[SystemModule]):
    def __init__(self, session):
        super().__init__(session, SystemModule)

    async def list_active(self) -> List[SystemModule]:
        """Active catalog in display order."""
        return await self.find_all(order_by=(SystemModule.name,), is_active=True)

    async def get_by_name(self, name: str) -> Optional[SystemModule]:
        return await self.maybe_single(name=name)

    async def map_by_id(self, ids) -> Dict[int, SystemModule]:
        if not ids:
            return {}
        statement = select(SystemModule).where(SystemModule.id.in_(list(ids)))
        result = await self.session.exec(statement)
        return {module.id: module for module in result.all()}


class SubscriptionPlanRepository(BaseRepository[SubscriptionPlan]):
    def __init__(self, session):
        super().__init__(session, SubscriptionPlan)

    async def get_by_name(self, name: str) -> Optional[SubscriptionPlan]:
        return await self.maybe_single(name=name)

    async def list_plans(self, active_only: bool = True) -> List[SubscriptionPlan]:
        filters = {"is_active": True} if active_only else {}
        return await self.find_all(order_by=(SubscriptionPlan.price_monthly, SubscriptionPlan.name), **filters)


class TenantSubscriptionRepository(BaseRepository[TenantSubscription]):
    def __init__(self, session):
        super().__init__(session, TenantSubscription)

    async def get_active(self, tenant_id: int) -> Optional[TenantSubscription]:
        """The tenant's active subscription; more than one raises MultipleResultsFound."""
        return await self.maybe_single(tenant_id=tenant_id, status=SubscriptionStatus.ACTIVE)

    async def list_for_tenant(self, tenant_id: int) -> List[TenantSubscription]:
        return await self.find_all(order_by=(TenantSubscription.created_at.desc(),), tenant_id=tenant_id)


class ModulePermissionRepository(BaseRepository[ModulePermission]):
    def __init__(self, session):
        super().__init__(session, ModulePermission)

    async def list_for_plan(self, plan_id: int) -> List[ModulePermission]:
        return await self.find_all(plan_id=plan_id)

    async def get_for_module(self, plan_id: int, module_name: str) -> Optional[ModulePermission]:
        return await self.maybe_single(plan_id=plan_id, module_name=module_name)

    async def delete_for_plan(self, plan_id: int) -> None:
        await self.session.execute(delete(ModulePermission).where(ModulePermission.plan_id == plan_id))


class TenantModuleAssignmentRepository(BaseRepository[TenantModuleAssignment]):
    def __init__(self, session):
        super().__init__(session, TenantModuleAssignment)

    async def list_for_tenant(self, tenant_id: int) -> List[TenantModuleAssignment]:
        return await self.find_all(order_by=(TenantModuleAssignment.assigned_at.desc(),), tenant_id=tenant_id)

    async def latest_effective(self, tenant_id: int, module_id: int, now: datetime) -> Optional[TenantModuleAssignment]:
        """Most recent enabled assignment for the module that has not expired at ``now``."""
        statement = (
            select(TenantModuleAssignment)
            .where(
                TenantModuleAssignment.tenant_id == tenant_id,
                TenantModuleAssignment.module_id == module_id,
                TenantModuleAssignment.is_enabled == True,  # noqa: E712
                or_(TenantModuleAssignment.expires_at.is_(None), TenantModuleAssignment.expires_at > now),
            )
            .order_by(TenantModuleAssignment.assigned_at.desc(), TenantModuleAssignment.id.desc())
            .limit(1)
        )
        result = await self.session.exec(statement)
        return result.first()

    async def list_effective(self, tenant_id: int, now: datetime) -> List[TenantModuleAssignment]:
        """Enabled, unexpired assignments of the tenant, newest first."""
        statement = (
            select(TenantModuleAssignment)
            .where(
                TenantModuleAssignment.tenant_id == tenant_id,
                TenantModuleAssignment.is_enabled == True,  # noqa: E712
                or_(TenantModuleAssignment.expires_at.is_(None), TenantModuleAssignment.expires_at > now),
            )
            .order_by(TenantModuleAssignment.assigned_at.desc(), TenantModuleAssignment.id.desc())
        )
        result = await self.session.exec(statement)
        return list(result.all())
