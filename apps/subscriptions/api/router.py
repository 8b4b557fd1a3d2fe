from typing import Dict, Optional
from fastapi import APIRouter, Depends
from framework.cache import CacheIdentity, QueryCache
from framework.dependencies import get_uow, get_query_cache
from framework.repository import UnitOfWork
from framework.response import ResponseModel
from framework.security import CurrentUser, get_current_user, require_superadmin
from apps.identity.api.router import get_active_tenant_id
from ..access import ModuleAccessService
from ..service import SubscriptionService
from ..schemas import PermissionEntry, PlanCreate, SubscriptionAssign, SubscriptionStatusUpdate

router = APIRouter()


def get_cache_identity(
    user: CurrentUser = Depends(get_current_user),
    tenant_id: Optional[int] = Depends(get_active_tenant_id),
) -> CacheIdentity:
    """Dependency: identity every cached read of this request is keyed by."""
    return CacheIdentity.from_user(user, tenant_id=tenant_id)


def get_subscription_service(
    uow: UnitOfWork = Depends(get_uow),
    cache: QueryCache = Depends(get_query_cache),
    identity: CacheIdentity = Depends(get_cache_identity),
) -> SubscriptionService:
    """Dependency: create SubscriptionService."""
    return SubscriptionService(uow, cache, identity)


def get_access_service(
    uow: UnitOfWork = Depends(get_uow),
    cache: QueryCache = Depends(get_query_cache),
    identity: CacheIdentity = Depends(get_cache_identity),
) -> ModuleAccessService:
    """Dependency: create ModuleAccessService."""
    return ModuleAccessService(uow, cache, identity)


@router.get("/plans")
async def list_plans(
    active_only: bool = True,
    service: SubscriptionService = Depends(get_subscription_service),
):
    return ResponseModel.success(data=await service.list_plans(active_only))


@router.post("/plans")
async def create_plan(
    payload: PlanCreate,
    admin: CurrentUser = Depends(require_superadmin),
    service: SubscriptionService = Depends(get_subscription_service),
):
    return ResponseModel.success(data=await service.create_plan(payload))


@router.get("/plans/{plan_id}/summary")
async def plan_summary(
    plan_id: int,
    service: SubscriptionService = Depends(get_subscription_service),
):
    """Share of the active module catalog the plan unlocks."""
    return ResponseModel.success(data=await service.summarize_plan(plan_id))


@router.put("/plans/{plan_id}/permissions")
async def save_plan_permissions(
    plan_id: int,
    payload: Dict[str, PermissionEntry],
    admin: CurrentUser = Depends(require_superadmin),
    service: SubscriptionService = Depends(get_subscription_service),
):
    """Replace the plan's module permissions (module name -> enabled + limits)."""
    rows = await service.save_plan_permissions(plan_id, payload)
    return ResponseModel.success(data=rows, message="Module permissions saved successfully")


@router.get("/tenants/{tenant_id}/active")
async def active_subscription(
    tenant_id: int,
    admin: CurrentUser = Depends(require_superadmin),
    service: SubscriptionService = Depends(get_subscription_service),
):
    return ResponseModel.success(data=await service.get_active_subscription(tenant_id))


@router.get("/tenants/{tenant_id}")
async def list_subscriptions(
    tenant_id: int,
    admin: CurrentUser = Depends(require_superadmin),
    service: SubscriptionService = Depends(get_subscription_service),
):
    return ResponseModel.success(data=await service.list_subscriptions(tenant_id))


@router.post("/tenants/{tenant_id}")
async def assign_subscription(
    tenant_id: int,
    payload: SubscriptionAssign,
    admin: CurrentUser = Depends(require_superadmin),
    service: SubscriptionService = Depends(get_subscription_service),
):
    """Subscribe tenant to a plan; a second active subscription needs replace_active."""
    return ResponseModel.success(data=await service.assign_subscription(tenant_id, payload))


@router.patch("/{subscription_id}/status")
async def update_subscription_status(
    subscription_id: int,
    payload: SubscriptionStatusUpdate,
    admin: CurrentUser = Depends(require_superadmin),
    service: SubscriptionService = Depends(get_subscription_service),
):
    return ResponseModel.success(data=await service.update_subscription_status(subscription_id, payload))
