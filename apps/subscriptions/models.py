from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Dict, Optional
from sqlalchemy import UniqueConstraint, event
from sqlmodel import SQLModel, Field, Column, JSON


def _now() -> datetime:
    return datetime.now(timezone.utc)


ACTIVE_SUBSCRIPTION_CONSTRAINT = "uq_tenant_subscriptions_active_tenant_id"


class SubscriptionStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


class BillingCycle(str, Enum):
    MONTHLY = "monthly"
    ANNUALLY = "annually"


class SystemModule(SQLModel, table=True):
    """Catalog entry of a pluggable business module."""
    __tablename__ = "system_modules"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(unique=True, index=True, max_length=100)
    category: str = Field(index=True, max_length=100)
    description: Optional[str] = Field(default=None, max_length=1000)
    version: Optional[str] = Field(default=None, max_length=50)
    is_active: bool = Field(default=True, index=True)
    # e.g. {"max_jobs": 10, "seats": 5}
    default_limits: Dict[str, int] = Field(default_factory=dict, sa_column=Column(JSON))
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)


class SubscriptionPlan(SQLModel, table=True):
    __tablename__ = "subscription_plans"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(unique=True, index=True, max_length=100)
    description: Optional[str] = Field(default=None, max_length=1000)
    price_monthly: Decimal = Field(default=Decimal("0"), max_digits=10, decimal_places=2)
    price_annually: Decimal = Field(default=Decimal("0"), max_digits=10, decimal_places=2)
    is_active: bool = Field(default=True)
    plan_type: str = Field(default="standard", max_length=50)
    created_at: datetime = Field(default_factory=_now)


class TenantSubscription(SQLModel, table=True):
    """Links a tenant to a plan; at most one row per tenant may be active."""
    __tablename__ = "tenant_subscriptions"
    __table_args__ = (
        UniqueConstraint("active_tenant_id", name=ACTIVE_SUBSCRIPTION_CONSTRAINT),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    tenant_id: int = Field(foreign_key="tenants.id", index=True)
    plan_id: int = Field(foreign_key="subscription_plans.id", index=True)
    status: SubscriptionStatus = Field(default=SubscriptionStatus.ACTIVE, index=True)
    billing_cycle: BillingCycle = Field(default=BillingCycle.MONTHLY)
    starts_at: datetime = Field(default_factory=_now)
    ends_at: Optional[datetime] = Field(default=None)
    created_at: datetime = Field(default_factory=_now)
    # tenant_id while active, NULL otherwise; the unique key admits many NULLs
    active_tenant_id: Optional[int] = Field(default=None)


@event.listens_for(TenantSubscription, "before_insert")
@event.listens_for(TenantSubscription, "before_update")
def _sync_active_tenant(mapper, connection, target: TenantSubscription) -> None:
    target.active_tenant_id = target.tenant_id if target.status == SubscriptionStatus.ACTIVE else None


class ModulePermission(SQLModel, table=True):
    """Whether a plan grants a module, and under which limits."""
    __tablename__ = "module_permissions"
    __table_args__ = (UniqueConstraint("plan_id", "module_name", name="uq_module_permissions_plan_module"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    plan_id: int = Field(foreign_key="subscription_plans.id", index=True)
    module_name: str = Field(index=True, max_length=100)
    is_enabled: bool = Field(default=False)
    limits: Dict[str, int] = Field(default_factory=dict, sa_column=Column(JSON))


class TenantModuleAssignment(SQLModel, table=True):
    """Manual grant or revocation of a module for one tenant, outside its plan."""
    __tablename__ = "tenant_module_assignments"

    id: Optional[int] = Field(default=None, primary_key=True)
    tenant_id: int = Field(foreign_key="tenants.id", index=True)
    module_id: int = Field(foreign_key="system_modules.id", index=True)
    is_enabled: bool = Field(default=True)
    assigned_by: Optional[int] = Field(default=None, foreign_key="users.id")
    assigned_at: datetime = Field(default_factory=_now)
    expires_at: Optional[datetime] = Field(default=None)
    custom_limits: Optional[Dict[str, int]] = Field(default=None, sa_column=Column(JSON))
    updated_at: datetime = Field(default_factory=_now)
