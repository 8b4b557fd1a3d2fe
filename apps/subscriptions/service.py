from datetime import datetime, timezone
from typing import Dict, List, Optional
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from framework.cache import CacheIdentity, QueryCache, make_key
from framework.exceptions.handler import (
    ActiveSubscriptionConflict,
    BackendError,
    BusinessException,
    NotFoundError,
    backend_errors,
)
from framework.logging.logger import get_audit_logger
from framework.repository import UnitOfWork
from apps.identity.repository import TenantRepository
from .access import ACCESS_STATS_VIEW, UNIFIED_ACCESS_VIEW
from .models import (
    ModulePermission,
    SubscriptionPlan,
    SubscriptionStatus,
    TenantSubscription,
)
from .repository import (
    ModulePermissionRepository,
    SubscriptionPlanRepository,
    SystemModuleRepository,
    TenantSubscriptionRepository,
)
from .schemas import PermissionEntry, PermissionSummary, PlanCreate, SubscriptionAssign, SubscriptionStatusUpdate
from .summary import summarize_permissions

logger = get_audit_logger("subscription_service")

PLAN_SUMMARY_VIEW = "plan-summary"


class SubscriptionService:
    """Plans, tenant subscriptions and plan-level module permissions."""

    def __init__(self, uow: UnitOfWork, cache: Optional[QueryCache] = None, identity: Optional[CacheIdentity] = None):
        self.uow = uow
        self.cache = cache
        self.identity = identity

    def _invalidate_on_commit(self, views) -> None:
        if self.cache is None:
            return
        cache = self.cache
        views = list(views)

        async def invalidate():
            await cache.invalidate_views(views)

        self.uow.after_commit(invalidate)

    async def _commit(self, action: str) -> None:
        try:
            await self.uow.commit()
        except IntegrityError as e:
            await self.uow.rollback()
            logger.warning(f"{action}: integrity error {e.orig if hasattr(e, 'orig') else e}")
            raise BusinessException(f"{action} failed: data conflict", code=400) from e
        except SQLAlchemyError as e:
            await self.uow.rollback()
            raise BackendError(f"{action} failed", detail=str(e)) from e

    # --- Plans ---

    async def create_plan(self, data: PlanCreate) -> SubscriptionPlan:
        plans = self.uow.get_repository(SubscriptionPlanRepository)
        with backend_errors("Creating plan"):
            if await plans.get_by_name(data.name):
                raise BusinessException(f"Plan {data.name} already exists", code=400)
        plan = SubscriptionPlan(**data.model_dump())
        await plans.create(plan)
        await self._commit("Creating plan")
        logger.info(f"Plan created | id={plan.id} name={plan.name}")
        return plan

    async def list_plans(self, active_only: bool = True) -> List[SubscriptionPlan]:
        with backend_errors("Listing plans"):
            return await self.uow.get_repository(SubscriptionPlanRepository).list_plans(active_only)

    async def _get_plan(self, plan_id: int) -> SubscriptionPlan:
        with backend_errors("Loading plan"):
            plan = await self.uow.get_repository(SubscriptionPlanRepository).get_by_id(plan_id)
        if plan is None:
            raise NotFoundError(f"Plan {plan_id} not found")
        return plan

    # --- Tenant subscriptions ---

    async def get_active_subscription(self, tenant_id: int) -> Optional[TenantSubscription]:
        with backend_errors("Loading active subscription"):
            return await self.uow.get_repository(TenantSubscriptionRepository).get_active(tenant_id)

    async def list_subscriptions(self, tenant_id: int) -> List[TenantSubscription]:
        """Every subscription of the tenant, newest first."""
        with backend_errors("Listing subscriptions"):
            return await self.uow.get_repository(TenantSubscriptionRepository).list_for_tenant(tenant_id)

    async def _lock_tenant(self, tenant_id: int) -> None:
        """Serialize subscription writes of one tenant; the lock lasts until commit or rollback."""
        with backend_errors("Loading tenant"):
            if await self.uow.get_repository(TenantRepository).lock(tenant_id) is None:
                raise NotFoundError(f"Tenant {tenant_id} not found")

    async def _release_active(self, tenant_id: int, replace_active: bool, keep_id: Optional[int] = None) -> None:
        """Enforce one active subscription per tenant before writing another."""
        repo = self.uow.get_repository(TenantSubscriptionRepository)
        with backend_errors("Checking active subscriptions"):
            active = [
                s for s in await repo.find_all(tenant_id=tenant_id, status=SubscriptionStatus.ACTIVE)
                if s.id != keep_id
            ]
            if not active:
                return
            if not replace_active:
                raise ActiveSubscriptionConflict(tenant_id, active[0].id)
            for subscription in active:
                await repo.update(subscription, status=SubscriptionStatus.INACTIVE, ends_at=datetime.now(timezone.utc))
                logger.info(f"Subscription {subscription.id} of tenant {tenant_id} moved to inactive")
            # the status change must reach the database before the new active row
            await self.uow.flush()

    async def _commit_subscription(self, tenant_id: int, action: str) -> None:
        """Commit; a second active row rejected by the database becomes a 409."""
        try:
            await self.uow.commit()
        except IntegrityError as e:
            await self.uow.rollback()
            if "active_tenant_id" not in str(e.orig):
                logger.warning(f"{action}: integrity error {e.orig}")
                raise BusinessException(f"{action} failed: data conflict", code=400) from e
            logger.warning(f"{action}: tenant {tenant_id} gained an active subscription concurrently")
            active = await self.get_active_subscription(tenant_id)
            raise ActiveSubscriptionConflict(tenant_id, active.id if active else None) from e
        except SQLAlchemyError as e:
            await self.uow.rollback()
            raise BackendError(f"{action} failed", detail=str(e)) from e

    def _tenant_views(self, tenant_id: int):
        return [(UNIFIED_ACCESS_VIEW, tenant_id), (ACCESS_STATS_VIEW, tenant_id)]

    async def assign_subscription(self, tenant_id: int, data: SubscriptionAssign) -> TenantSubscription:
        await self._lock_tenant(tenant_id)
        plan = await self._get_plan(data.plan_id)
        if not plan.is_active:
            raise BusinessException(f"Plan {plan.name} is not active", code=400)
        plan_name = plan.name

        await self._release_active(tenant_id, data.replace_active)
        subscription = TenantSubscription(
            tenant_id=tenant_id,
            plan_id=plan.id,
            status=SubscriptionStatus.ACTIVE,
            billing_cycle=data.billing_cycle,
            starts_at=data.starts_at or datetime.now(timezone.utc),
            ends_at=data.ends_at,
        )
        await self.uow.get_repository(TenantSubscriptionRepository).create(subscription)
        self._invalidate_on_commit(self._tenant_views(tenant_id))
        await self._commit_subscription(tenant_id, "Assigning subscription")
        logger.info(f"Tenant {tenant_id} subscribed to plan {plan_name} ({data.billing_cycle.value})")
        return subscription

    async def update_subscription_status(self, subscription_id: int, data: SubscriptionStatusUpdate) -> TenantSubscription:
        repo = self.uow.get_repository(TenantSubscriptionRepository)
        with backend_errors("Loading subscription"):
            subscription = await repo.get_by_id(subscription_id)
        if subscription is None:
            raise NotFoundError(f"Subscription {subscription_id} not found")
        # rollback expires loaded rows
        tenant_id = subscription.tenant_id

        if data.status == SubscriptionStatus.ACTIVE and subscription.status != SubscriptionStatus.ACTIVE:
            await self._lock_tenant(tenant_id)
            await self._release_active(tenant_id, data.replace_active, keep_id=subscription.id)

        await repo.update(subscription, status=data.status)
        self._invalidate_on_commit(self._tenant_views(tenant_id))
        await self._commit_subscription(tenant_id, "Updating subscription")
        logger.info(f"Subscription {subscription_id} status -> {data.status.value}")
        return subscription

    # --- Plan permissions ---

    async def save_plan_permissions(self, plan_id: int, entries: Dict[str, PermissionEntry]) -> List[ModulePermission]:
        """Replace the plan's whole permission set."""
        plan = await self._get_plan(plan_id)
        permissions = self.uow.get_repository(ModulePermissionRepository)
        subscriptions = self.uow.get_repository(TenantSubscriptionRepository)

        with backend_errors("Saving plan permissions"):
            catalog = {m.name for m in await self.uow.get_repository(SystemModuleRepository).find_all()}
            unknown = sorted(set(entries) - catalog)
            if unknown:
                raise BusinessException(f"Unknown modules: {', '.join(unknown)}", code=400)

            subscribed = {
                s.tenant_id for s in await subscriptions.find_all(plan_id=plan_id, status=SubscriptionStatus.ACTIVE)
            }
            await permissions.delete_for_plan(plan_id)
            rows = [
                ModulePermission(plan_id=plan_id, module_name=name, is_enabled=entry.is_enabled, limits=entry.limits)
                for name, entry in sorted(entries.items())
            ]
            for row in rows:
                await permissions.create(row)

        views = [(PLAN_SUMMARY_VIEW, plan_id)]
        for tenant_id in subscribed:
            views.extend(self._tenant_views(tenant_id))
        self._invalidate_on_commit(views)
        await self._commit("Saving plan permissions")
        logger.info(
            f"Plan {plan.name} permissions saved: {sum(r.is_enabled for r in rows)}/{len(rows)} enabled, "
            f"{len(subscribed)} tenant(s) affected"
        )
        return rows

    async def summarize_plan(self, plan_id: int) -> PermissionSummary:
        async def load():
            await self._get_plan(plan_id)
            with backend_errors("Loading plan permissions"):
                modules = await self.uow.get_repository(SystemModuleRepository).list_active()
                permissions = await self.uow.get_repository(ModulePermissionRepository).list_for_plan(plan_id)
            return summarize_permissions(modules, permissions)

        if self.cache is None:
            return await load()
        key = make_key(PLAN_SUMMARY_VIEW, (plan_id,), self.identity)
        return await self.cache.get_or_load(key, load, schema=PermissionSummary)
