"""
Module access resolution.

``check_access`` answers "can tenant T use module M?" in strict order:

1. no tenant                      -> denied, nothing populated
2. no active subscription         -> denied, plan/subscription empty
3. plan has no row for the module -> denied, plan/subscription populated
4. otherwise                      -> ``permission.is_enabled`` with the stored limits

When overrides are honored, the newest enabled, non-expired
``TenantModuleAssignment`` for the module is applied on top of that result and
wins over the plan. A disabled override no longer counts; the plan decides again.
Empty lookups are ordinary denials; database failures raise ``BackendError``.
"""

import asyncio
from datetime import datetime, timezone
from typing import Optional, Set

from framework.cache import CacheIdentity, QueryCache, make_key
from framework.config import settings
from framework.exceptions.handler import BackendTimeoutError, backend_errors
from framework.logging.logger import get_audit_logger
from framework.repository import UnitOfWork
from .limits import merge_limits
from .models import ModulePermission, SubscriptionPlan, SystemModule, TenantSubscription
from .repository import (
    ModulePermissionRepository,
    SubscriptionPlanRepository,
    SystemModuleRepository,
    TenantModuleAssignmentRepository,
    TenantSubscriptionRepository,
)
from .schemas import AccessResult, AccessStats, ModuleGrant, OverrideInfo, PlanInfo, SubscriptionInfo

logger = get_audit_logger("module_access")

UNIFIED_ACCESS_VIEW = "unified-module-access"
ACCESS_STATS_VIEW = "module-access-stats"


def _plan_info(plan: Optional[SubscriptionPlan]) -> Optional[PlanInfo]:
    if plan is None:
        return None
    return PlanInfo(
        id=plan.id,
        name=plan.name,
        plan_type=plan.plan_type,
        price_monthly=plan.price_monthly,
        price_annually=plan.price_annually,
    )


def _subscription_info(subscription: TenantSubscription) -> SubscriptionInfo:
    return SubscriptionInfo.model_validate(subscription, from_attributes=True)


class ModuleAccessService:
    def __init__(
        self,
        uow: UnitOfWork,
        cache: Optional[QueryCache] = None,
        identity: Optional[CacheIdentity] = None,
        honor_overrides: Optional[bool] = None,
        timeout: Optional[float] = None,
    ):
        self.uow = uow
        self.cache = cache
        self.identity = identity
        self.honor_overrides = settings.HONOR_MODULE_OVERRIDES if honor_overrides is None else honor_overrides
        self.timeout = settings.ACCESS_CHECK_TIMEOUT_SECONDS if timeout is None else timeout

    async def _bounded(self, coro, action: str):
        try:
            return await asyncio.wait_for(coro, timeout=self.timeout)
        except asyncio.TimeoutError:
            raise BackendTimeoutError(f"{action} timed out after {self.timeout:g}s")

    async def check_access(self, tenant_id: Optional[int], module_name: str) -> AccessResult:
        if not tenant_id:
            return AccessResult.denied()

        async def load():
            return await self._bounded(self._resolve(tenant_id, module_name), "Module access check")

        if self.cache is None:
            result = await load()
        else:
            key = make_key(UNIFIED_ACCESS_VIEW, (tenant_id, module_name), self.identity)
            result = await self.cache.get_or_load(key, load, schema=AccessResult)

        logger.info(
            f"Access {'granted' if result.has_access else 'denied'} | tenant={tenant_id} "
            f"module={module_name} source={result.access_source}"
        )
        return result

    async def _resolve(self, tenant_id: int, module_name: str) -> AccessResult:
        subscriptions = self.uow.get_repository(TenantSubscriptionRepository)
        plans = self.uow.get_repository(SubscriptionPlanRepository)
        permissions = self.uow.get_repository(ModulePermissionRepository)

        with backend_errors("Module access check"):
            subscription = await subscriptions.get_active(tenant_id)
            permission: Optional[ModulePermission] = None
            if subscription is None:
                result = AccessResult.denied()
            else:
                plan_info = _plan_info(await plans.get_by_id(subscription.plan_id))
                subscription_info = _subscription_info(subscription)
                permission = await permissions.get_for_module(subscription.plan_id, module_name)
                if permission is None:
                    result = AccessResult.denied(plan_info, subscription_info)
                else:
                    result = AccessResult(
                        has_access=permission.is_enabled,
                        module=ModuleGrant(
                            module_name=module_name,
                            is_enabled=permission.is_enabled,
                            limits=permission.limits or {},
                        ),
                        plan=plan_info,
                        subscription=subscription_info,
                        subscription_type="tenant",
                        access_source="subscription" if permission.is_enabled else "none",
                    )

            if not result.has_access and not self.honor_overrides:
                return result

            catalog_entry = await self.uow.get_repository(SystemModuleRepository).get_by_name(module_name)
            defaults = catalog_entry.default_limits if catalog_entry else None
            plan_limits = permission.limits if permission is not None else None
            if result.has_access:
                result.effective_limits = merge_limits(defaults, plan_limits)

            if not self.honor_overrides or catalog_entry is None:
                return result
            return await self._apply_override(result, tenant_id, catalog_entry, plan_limits)

    async def _apply_override(
        self,
        result: AccessResult,
        tenant_id: int,
        catalog_entry: SystemModule,
        plan_limits,
    ) -> AccessResult:
        assignments = self.uow.get_repository(TenantModuleAssignmentRepository)
        override = await assignments.latest_effective(tenant_id, catalog_entry.id, datetime.now(timezone.utc))
        if override is None:
            return result

        return result.model_copy(update={
            "has_access": True,
            "access_source": "override",
            "module": ModuleGrant(module_name=catalog_entry.name, is_enabled=True, limits=plan_limits or {}),
            "effective_limits": merge_limits(catalog_entry.default_limits, plan_limits, override.custom_limits),
            "override": OverrideInfo.model_validate(override, from_attributes=True),
        })

    async def get_access_stats(self, tenant_id: int) -> AccessStats:
        """How many modules the tenant reaches through its plan and through overrides."""
        async def load():
            return await self._bounded(self._compute_stats(tenant_id), "Module access stats")

        if self.cache is None:
            return await load()
        key = make_key(ACCESS_STATS_VIEW, (tenant_id,), self.identity)
        return await self.cache.get_or_load(key, load, schema=AccessStats)

    async def _compute_stats(self, tenant_id: int) -> AccessStats:
        subscriptions = self.uow.get_repository(TenantSubscriptionRepository)
        plans = self.uow.get_repository(SubscriptionPlanRepository)
        permissions = self.uow.get_repository(ModulePermissionRepository)
        assignments = self.uow.get_repository(TenantModuleAssignmentRepository)
        modules = self.uow.get_repository(SystemModuleRepository)

        with backend_errors("Module access stats"):
            plan_name = None
            plan_modules: Set[str] = set()
            subscription = await subscriptions.get_active(tenant_id)
            if subscription is not None:
                plan = await plans.get_by_id(subscription.plan_id)
                plan_name = plan.name if plan else None
                plan_modules = {
                    p.module_name for p in await permissions.list_for_plan(subscription.plan_id) if p.is_enabled
                }

            module_ids = {a.module_id for a in await assignments.list_effective(tenant_id, datetime.now(timezone.utc))}
            granted = {m.name for m in (await modules.map_by_id(module_ids)).values()}

        active = plan_modules | granted if self.honor_overrides else plan_modules

        return AccessStats(
            subscription_modules=len(plan_modules),
            override_modules=len(granted),
            total_active_modules=len(active),
            plan_name=plan_name,
        )
