"""
Query cache: identity-namespaced keys and the Redis-backed store.
"""

from .query_keys import CacheIdentity, SecureQueryKey, make_key
from .store import QueryCache, TENANT_SWITCH_MARKERS

__all__ = ["CacheIdentity", "SecureQueryKey", "make_key", "QueryCache", "TENANT_SWITCH_MARKERS"]
