"""
Secure query keys.

Every cached read is keyed by its query shape *and* by who asked for it:
``(user, session fingerprint, tenant)`` is appended to the key so that a result
computed for one user or tenant can never be served to another, even when the
query itself is identical.
"""

from dataclasses import dataclass
from typing import Any, Iterable, Optional, Tuple
from urllib.parse import quote, unquote

ANONYMOUS = "anonymous"
NO_SESSION = "no-session"
NO_TENANT = "no-tenant"

# Segments are percent-encoded, so neither separator can appear inside one
SEGMENT_SEP = ":"
IDENTITY_SEP = "|"


def _segment(value: Any) -> str:
    if value is None:
        text = "null"
    elif isinstance(value, bool):
        text = "true" if value else "false"
    else:
        text = str(value)
    return quote(text, safe="")


@dataclass(frozen=True)
class CacheIdentity:
    user_id: Optional[Any] = None
    session_fingerprint: Optional[str] = None
    tenant_id: Optional[Any] = None

    @classmethod
    def from_user(cls, user, tenant_id: Optional[Any] = None) -> "CacheIdentity":
        """Identity of a CurrentUser; ``tenant_id`` overrides the token's tenant."""
        if user is None:
            return cls(tenant_id=tenant_id)
        return cls(
            user_id=user.id,
            session_fingerprint=user.session_fingerprint,
            tenant_id=tenant_id if tenant_id is not None else user.tenant_id,
        )

    def segments(self) -> Tuple[str, str, str]:
        return (
            _segment(self.user_id) if self.user_id is not None else ANONYMOUS,
            _segment(self.session_fingerprint) if self.session_fingerprint else NO_SESSION,
            _segment(self.tenant_id) if self.tenant_id is not None else NO_TENANT,
        )


@dataclass(frozen=True)
class SecureQueryKey:
    query: Tuple[str, ...]
    identity: Tuple[str, str, str]

    @property
    def parts(self) -> Tuple[str, ...]:
        return self.query + self.identity

    def render(self, prefix: str) -> str:
        return (
            f"{prefix}{SEGMENT_SEP}{SEGMENT_SEP.join(self.query)}"
            f"{IDENTITY_SEP}{SEGMENT_SEP.join(self.identity)}"
        )

    @classmethod
    def parse(cls, rendered: str, prefix: str) -> "SecureQueryKey":
        body = rendered[len(prefix) + 1:]
        query, _, identity = body.partition(IDENTITY_SEP)
        return cls(tuple(query.split(SEGMENT_SEP)), tuple(identity.split(SEGMENT_SEP)))

    def query_text(self) -> str:
        """Decoded query part, used for substring matching."""
        return SEGMENT_SEP.join(unquote(part) for part in self.query)


def make_key(base: str, extras: Iterable[Any] = (), identity: Optional[CacheIdentity] = None) -> SecureQueryKey:
    """Build the composite cache key ``(base, *extras, user, session, tenant)``."""
    identity = identity or CacheIdentity()
    query = (_segment(base),) + tuple(_segment(extra) for extra in extras)
    return SecureQueryKey(query=query, identity=identity.segments())


def view_prefix(prefix: str, base: str, tenant_id: Any) -> str:
    """Rendered prefix shared by every key of view ``(base, tenant_id)``."""
    return f"{prefix}{SEGMENT_SEP}{_segment(base)}{SEGMENT_SEP}{_segment(tenant_id)}"


def user_pattern(prefix: str, user_id: Any) -> str:
    return f"{prefix}{SEGMENT_SEP}*{IDENTITY_SEP}{_segment(user_id)}{SEGMENT_SEP}*"
