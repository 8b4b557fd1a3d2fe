from typing import Any, Dict, Optional
from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel
from framework.config import settings
from framework.exceptions.handler import BusinessException
from framework.response import ResponseModel
from framework.security import CurrentUser, get_current_user
from apps.identity.api.router import get_active_tenant_id
from apps.subscriptions.api.router import get_access_service
from apps.subscriptions.access import ModuleAccessService
from ..initializer import AISystemInitializer
from ..matching import SmartMatchClient

router = APIRouter()


class MatchRequest(BaseModel):
    candidate: Dict[str, Any]
    job: Dict[str, Any]


def get_ai_initializer(request: Request) -> AISystemInitializer:
    return request.app.state.ai_initializer


def get_match_client(request: Request) -> SmartMatchClient:
    return request.app.state.match_client


@router.get("/status")
async def ai_status(
    initializer: AISystemInitializer = Depends(get_ai_initializer),
    user: CurrentUser = Depends(get_current_user),
):
    """Outcome of the last AI service start-up."""
    if not initializer.is_initialized:
        return ResponseModel.success(data={"initialized": False})
    return ResponseModel.success(data={
        "initialized": True,
        "success": initializer.result.success,
        "services": initializer.result.initialized,
        "failed": initializer.result.failed,
        "errors": initializer.result.errors if user.is_superadmin else {},
    })


@router.post("/reinit")
async def ai_reinit(
    initializer: AISystemInitializer = Depends(get_ai_initializer),
    user: CurrentUser = Depends(get_current_user),
):
    if not user.is_superadmin:
        raise BusinessException("Platform admin role required", status_code=403, code=403)
    result = await initializer.reinit()
    return ResponseModel.success(data={"success": result.success, "failed": result.failed})


@router.post("/match")
async def smart_match(
    payload: MatchRequest,
    tenant_id: Optional[int] = Depends(get_active_tenant_id),
    access: ModuleAccessService = Depends(get_access_service),
    client: SmartMatchClient = Depends(get_match_client),
):
    """Smart talent matching, offered only to tenants with the matching module."""
    decision = await access.check_access(tenant_id, settings.AI_MATCHING_MODULE)
    if not decision.has_access:
        raise BusinessException(
            f"Module {settings.AI_MATCHING_MODULE} is not enabled for this tenant",
            status_code=403,
            code=403,
        )
    result = await client.match(payload.candidate, payload.job, tenant_id=tenant_id)
    return ResponseModel.success(data=result)
