"""Tenant context and identity-driven cache policies."""
import pytest

from apps.identity.models import Tenant
from apps.identity.service import AuthEvent, SessionService
from framework.cache import CacheIdentity, make_key
from framework.exceptions.handler import BusinessException, NotFoundError


async def test_active_tenant_defaults_to_token_tenant(uow, seed, member_user):
    service = SessionService(uow)
    assert await service.resolve_active_tenant(member_user, None) == seed.acme.id


async def test_active_tenant_from_header_requires_membership(uow, seed, member_user, async_session):
    service = SessionService(uow)
    # alice is a member of Globex through user_tenants
    assert await service.resolve_active_tenant(member_user, str(seed.globex.id)) == seed.globex.id

    initech = Tenant(name="Initech")
    async_session.add(initech)
    await async_session.commit()
    with pytest.raises(BusinessException) as exc_info:
        await service.resolve_active_tenant(member_user, str(initech.id))
    assert exc_info.value.code == 403


async def test_superadmin_may_act_on_any_tenant(uow, seed, admin_user):
    assert await SessionService(uow).resolve_active_tenant(admin_user, str(seed.globex.id)) == seed.globex.id


async def test_invalid_or_unknown_tenant(uow, seed, member_user):
    service = SessionService(uow)
    with pytest.raises(BusinessException) as exc_info:
        await service.resolve_active_tenant(member_user, "acme")
    assert exc_info.value.code == 400
    with pytest.raises(NotFoundError):
        await service.resolve_active_tenant(member_user, "9999")


async def test_inactive_tenant_is_rejected(uow, seed, admin_user, async_session):
    seed.globex.is_active = False
    async_session.add(seed.globex)
    await async_session.commit()
    with pytest.raises(BusinessException) as exc_info:
        await SessionService(uow).ensure_tenant_access(admin_user, seed.globex.id)
    assert exc_info.value.code == 400


@pytest.mark.parametrize("event", list(AuthEvent))
async def test_auth_events_clear_everything(uow, seed, cache, member_user, admin_user, event):
    await cache.set(make_key("plan-summary", (1,), CacheIdentity.from_user(member_user)), [1])
    await cache.set(make_key("tenant-modules", (1,), CacheIdentity.from_user(admin_user)), [1])

    assert await SessionService(uow, cache).handle_auth_event(event, member_user) == 2
    assert await cache.client.keys("qc:*") == []


async def test_switch_tenant_drops_tenant_scoped_entries(uow, seed, cache, member_user):
    identity = CacheIdentity.from_user(member_user)
    await cache.set(make_key("tenant-modules", (seed.acme.id,), identity), [1])
    await cache.set(make_key("plan-summary", (seed.starter.id,), identity), [1])

    new_identity = await SessionService(uow, cache).switch_tenant(member_user, seed.globex.id)

    assert new_identity.tenant_id == seed.globex.id
    assert new_identity.user_id == member_user.id
    assert await cache.get(make_key("tenant-modules", (seed.acme.id,), identity)) is None
    assert await cache.get(make_key("plan-summary", (seed.starter.id,), identity)) == [1]
