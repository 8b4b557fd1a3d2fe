from typing import Optional
from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel
from framework.cache import QueryCache
from framework.dependencies import get_uow, get_query_cache
from framework.repository import UnitOfWork
from framework.response import ResponseModel
from framework.security import CurrentUser, get_current_user
from ..service import AuthEvent, SessionService

router = APIRouter()


class AuthEventSchema(BaseModel):
    event: AuthEvent


class SwitchTenantSchema(BaseModel):
    tenant_id: int


def get_session_service(
    uow: UnitOfWork = Depends(get_uow),
    cache: QueryCache = Depends(get_query_cache),
) -> SessionService:
    """Dependency: create SessionService."""
    return SessionService(uow, cache)


async def get_active_tenant_id(
    request: Request,
    user: CurrentUser = Depends(get_current_user),
    service: SessionService = Depends(get_session_service),
) -> Optional[int]:
    """Dependency: tenant the request acts on (X-Tenant-ID header or token tenant)."""
    requested = getattr(request.state, "tenant_id", None) or request.headers.get("X-Tenant-ID")
    return await service.resolve_active_tenant(user, requested)


@router.post("/session/events")
async def session_event(
    payload: AuthEventSchema,
    user: CurrentUser = Depends(get_current_user),
    service: SessionService = Depends(get_session_service),
):
    """Auth provider hook: sign-in, sign-out and token refresh clear the query cache."""
    removed = await service.handle_auth_event(payload.event, user)
    return ResponseModel.success(data={"event": payload.event.value, "cleared": removed})


@router.post("/session/switch-tenant")
async def switch_tenant(
    payload: SwitchTenantSchema,
    user: CurrentUser = Depends(get_current_user),
    service: SessionService = Depends(get_session_service),
):
    """Switch the active tenant; tenant-scoped cache entries of the user are dropped."""
    identity = await service.switch_tenant(user, payload.tenant_id)
    return ResponseModel.success(data={"tenant_id": payload.tenant_id, "cache_identity": list(identity.segments())})
