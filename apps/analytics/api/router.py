from typing import Any, Dict, List, Literal, Optional
from fastapi import APIRouter, Depends
from pydantic import BaseModel
from framework.response import ResponseModel
from framework.security import CurrentUser, get_current_user
from ..completeness import FIELD_SPECS, calculate_completeness

router = APIRouter()


class CompletenessRequest(BaseModel):
    entity: Dict[str, Any]
    entity_type: Optional[Literal["company", "candidate"]] = None
    fields: Optional[List[str]] = None


@router.post("/completeness")
async def completeness(
    payload: CompletenessRequest,
    user: CurrentUser = Depends(get_current_user),
):
    """Score how complete an entity profile is; explicit fields win over the entity type's field list."""
    if payload.fields is not None:
        fields = payload.fields
    elif payload.entity_type is not None:
        fields = FIELD_SPECS[payload.entity_type]
    else:
        fields = list(payload.entity.keys())
    return ResponseModel.success(data=calculate_completeness(payload.entity, fields))
