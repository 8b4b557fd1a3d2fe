from datetime import datetime, timezone
from typing import Optional
from sqlmodel import SQLModel, Field


class Tenant(SQLModel, table=True):
    __tablename__ = "tenants"
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(unique=True, index=True, max_length=255)
    is_active: bool = Field(default=True)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class User(SQLModel, table=True):
    """Profile of a user authenticated by the external auth provider."""
    __tablename__ = "users"
    id: Optional[int] = Field(default=None, primary_key=True)
    username: str = Field(unique=True, index=True, max_length=255)
    email: Optional[str] = Field(default=None, max_length=320)
    tenant_id: Optional[int] = Field(default=None, foreign_key="tenants.id", index=True)
    role: str = Field(default="member", max_length=50)  # superadmin, admin, member


class UserTenant(SQLModel, table=True):
    """Membership of a user in a tenant other than (or besides) their home tenant."""
    __tablename__ = "user_tenants"
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="users.id", index=True)
    tenant_id: int = Field(foreign_key="tenants.id", index=True)
