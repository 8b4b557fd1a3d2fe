"""Result and request schemas of the subscriptions app."""

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Literal, Optional
from pydantic import BaseModel, Field
from .models import BillingCycle, SubscriptionStatus

AccessSource = Literal["subscription", "override", "none"]


class ModuleGrant(BaseModel):
    module_name: str
    is_enabled: bool
    # stored value, unmerged
    limits: Dict[str, Any] = Field(default_factory=dict)


class PlanInfo(BaseModel):
    id: int
    name: str
    plan_type: str
    price_monthly: Decimal
    price_annually: Decimal


class SubscriptionInfo(BaseModel):
    id: int
    tenant_id: int
    plan_id: int
    status: SubscriptionStatus
    billing_cycle: BillingCycle
    starts_at: datetime
    ends_at: Optional[datetime] = None


class OverrideInfo(BaseModel):
    id: int
    module_id: int
    is_enabled: bool
    assigned_by: Optional[int] = None
    expires_at: Optional[datetime] = None
    custom_limits: Optional[Dict[str, int]] = None


class AccessResult(BaseModel):
    has_access: bool
    module: Optional[ModuleGrant] = None
    plan: Optional[PlanInfo] = None
    subscription: Optional[SubscriptionInfo] = None
    subscription_type: Optional[Literal["tenant"]] = None
    access_source: AccessSource = "none"
    effective_limits: Dict[str, int] = Field(default_factory=dict)
    override: Optional[OverrideInfo] = None

    @classmethod
    def denied(cls, plan: Optional[PlanInfo] = None, subscription: Optional[SubscriptionInfo] = None) -> "AccessResult":
        return cls(has_access=False, plan=plan, subscription=subscription)


class ModuleDetail(BaseModel):
    name: str
    label: str
    is_enabled: bool
    limits: Dict[str, Any] = Field(default_factory=dict)


class PermissionSummary(BaseModel):
    total_modules: int
    enabled_modules: int
    enabled_percentage: int
    key_limitations: List[str]
    module_details: List[ModuleDetail]


class AccessStats(BaseModel):
    subscription_modules: int
    override_modules: int
    total_active_modules: int
    plan_name: Optional[str] = None


class TenantOverride(BaseModel):
    id: int
    tenant_id: int
    module_id: int
    module_name: Optional[str] = None
    is_enabled: bool
    assigned_by: Optional[int] = None
    assigned_at: datetime
    expires_at: Optional[datetime] = None
    custom_limits: Optional[Dict[str, int]] = None


# --- Requests ---

class PlanCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    description: Optional[str] = None
    price_monthly: Decimal = Field(default=Decimal("0"), ge=0)
    price_annually: Decimal = Field(default=Decimal("0"), ge=0)
    plan_type: str = "standard"
    is_active: bool = True


class PermissionEntry(BaseModel):
    is_enabled: bool = False
    limits: Dict[str, int] = Field(default_factory=dict)


class SubscriptionAssign(BaseModel):
    plan_id: int
    billing_cycle: BillingCycle = BillingCycle.MONTHLY
    starts_at: Optional[datetime] = None
    ends_at: Optional[datetime] = None
    replace_active: bool = False


class SubscriptionStatusUpdate(BaseModel):
    status: SubscriptionStatus
    replace_active: bool = False


class OverrideCreate(BaseModel):
    tenant_id: int
    module_id: int
    expires_at: Optional[datetime] = None
    custom_limits: Optional[Dict[str, int]] = None
