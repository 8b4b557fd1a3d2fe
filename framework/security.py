import hashlib
from datetime import datetime, timedelta, timezone
from typing import Optional
from jose import jwt, JWTError
from fastapi import Depends, HTTPException, status, Request
from fastapi.security import OAuth2PasswordBearer
from pydantic import BaseModel
from framework.config import settings

# Tokens are issued by the external auth provider; we only verify them
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/token", auto_error=False)

ACCESS_TOKEN_EXPIRE_MINUTES = 60

# --- Core models ---

class CurrentUser(BaseModel):
    """Current logged-in user context"""
    id: int
    username: str
    tenant_id: Optional[int] = None
    role: str = "member"
    session_id: Optional[str] = None

    @property
    def is_superadmin(self) -> bool:
        return self.role == "superadmin"

    @property
    def session_fingerprint(self) -> Optional[str]:
        """Short, non-reversible fingerprint of the auth session."""
        if not self.session_id:
            return None
        return hashlib.sha256(self.session_id.encode("utf-8")).hexdigest()[:16]

# --- Helpers ---

def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Create JWT token (used by tooling and tests; production tokens come from the auth provider)."""
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: str) -> Optional[CurrentUser]:
    """Decode a token into a CurrentUser, or None when it is invalid."""
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except JWTError:
        return None

    username = payload.get("sub")
    user_id = payload.get("user_id")
    if username is None or user_id is None:
        return None

    return CurrentUser(
        id=user_id,
        username=username,
        tenant_id=payload.get("tenant_id"),
        role=payload.get("role") or "member",
        session_id=payload.get("sid"),
    )

# --- FastAPI dependencies ---

def get_token_from_request(
    request: Request,
    token_from_header: Optional[str] = Depends(oauth2_scheme)
) -> Optional[str]:
    """
    Get token from request: prefer cookie, then Authorization header.
    """
    token = request.cookies.get(settings.ACCESS_TOKEN_COOKIE_NAME)
    if not token and token_from_header:
        token = token_from_header
    return token


def get_optional_user(
    token: Optional[str] = Depends(get_token_from_request)
) -> Optional[CurrentUser]:
    """Dependency: current user when a valid token is present, else None."""
    if not token:
        return None
    return decode_access_token(token)


def get_current_user(
    user: Optional[CurrentUser] = Depends(get_optional_user)
) -> CurrentUser:
    """
    Dependency: validate token and extract user. Use in router as user: CurrentUser = Depends(get_current_user).
    """
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


def require_superadmin(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    """Dependency: platform operator only (plans, permissions, overrides)."""
    if not user.is_superadmin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Platform admin role required")
    return user
