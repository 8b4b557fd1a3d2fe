from typing import Optional
from fastapi import APIRouter, Depends
from framework.cache import CacheIdentity, QueryCache
from framework.dependencies import get_uow, get_query_cache
from framework.repository import UnitOfWork
from framework.response import ResponseModel
from framework.security import CurrentUser, require_superadmin
from apps.identity.api.router import get_active_tenant_id
from ..access import ModuleAccessService
from ..overrides import ModuleOverrideService
from ..schemas import OverrideCreate
from .router import get_access_service, get_cache_identity

router = APIRouter()


def get_override_service(
    uow: UnitOfWork = Depends(get_uow),
    cache: QueryCache = Depends(get_query_cache),
    admin: CurrentUser = Depends(require_superadmin),
    identity: CacheIdentity = Depends(get_cache_identity),
) -> ModuleOverrideService:
    """Dependency: create ModuleOverrideService acting as the signed-in admin."""
    return ModuleOverrideService(uow, cache, acting_user=admin, identity=identity)


@router.get("/access/{module_name}")
async def check_module_access(
    module_name: str,
    tenant_id: Optional[int] = Depends(get_active_tenant_id),
    service: ModuleAccessService = Depends(get_access_service),
):
    """Can the active tenant use module_name, under which limits, and why."""
    return ResponseModel.success(data=await service.check_access(tenant_id, module_name))


@router.get("/stats")
async def module_access_stats(
    tenant_id: Optional[int] = Depends(get_active_tenant_id),
    service: ModuleAccessService = Depends(get_access_service),
):
    if tenant_id is None:
        return ResponseModel.fail(code=400, message="No tenant selected")
    return ResponseModel.success(data=await service.get_access_stats(tenant_id))


@router.get("/overrides/{tenant_id}")
async def list_overrides(
    tenant_id: int,
    service: ModuleOverrideService = Depends(get_override_service),
):
    return ResponseModel.success(data=await service.list_overrides(tenant_id))


@router.post("/overrides")
async def enable_override(
    payload: OverrideCreate,
    service: ModuleOverrideService = Depends(get_override_service),
):
    """Grant a module to a tenant outside its plan (emergency/manual access)."""
    assignment = await service.enable_override(
        payload.tenant_id,
        payload.module_id,
        expires_at=payload.expires_at,
        custom_limits=payload.custom_limits,
    )
    return ResponseModel.success(data=assignment)


@router.post("/overrides/{assignment_id}/disable")
async def disable_override(
    assignment_id: int,
    service: ModuleOverrideService = Depends(get_override_service),
):
    await service.disable_override(assignment_id)
    return ResponseModel.success(data={"id": assignment_id, "is_enabled": False})
