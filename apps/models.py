"""
Model registration for migrations: import all models that should be migrated by Alembic here.
Alembic env and the test fixtures import this module so every table lands in SQLModel metadata.
"""
from apps.identity.models import Tenant, User, UserTenant
from apps.subscriptions.models import (
    ModulePermission,
    SubscriptionPlan,
    SystemModule,
    TenantModuleAssignment,
    TenantSubscription,
)

__all__ = [
    "Tenant",
    "User",
    "UserTenant",
    "SystemModule",
    "SubscriptionPlan",
    "TenantSubscription",
    "ModulePermission",
    "TenantModuleAssignment",
]
