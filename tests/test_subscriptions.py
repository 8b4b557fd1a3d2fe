"""Plans, tenant subscriptions and plan permissions."""
from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError

from apps.subscriptions.access import ModuleAccessService
from apps.subscriptions.models import BillingCycle, SubscriptionStatus
from apps.subscriptions.repository import TenantSubscriptionRepository
from apps.subscriptions.schemas import (
    PermissionEntry,
    PlanCreate,
    SubscriptionAssign,
    SubscriptionStatusUpdate,
)
from apps.subscriptions.service import SubscriptionService
from framework.cache import CacheIdentity
from framework.exceptions.handler import ActiveSubscriptionConflict, BackendError, BusinessException, NotFoundError
from framework.repository import UnitOfWork


async def _active_rows(uow, tenant_id):
    repo = uow.get_repository(TenantSubscriptionRepository)
    return await repo.find_all(tenant_id=tenant_id, status=SubscriptionStatus.ACTIVE)


async def test_create_and_list_plans(uow, seed):
    service = SubscriptionService(uow)
    plan = await service.create_plan(PlanCreate(name="Pro", price_monthly=Decimal("49.00")))
    assert plan.id is not None

    names = [p.name for p in await service.list_plans()]
    assert names == ["Starter", "Pro"]

    with pytest.raises(BusinessException) as exc_info:
        await service.create_plan(PlanCreate(name="Pro"))
    assert exc_info.value.code == 400


async def test_second_active_subscription_is_rejected(uow, seed):
    pro = await SubscriptionService(uow).create_plan(PlanCreate(name="Pro"))

    with pytest.raises(ActiveSubscriptionConflict) as exc_info:
        await SubscriptionService(uow).assign_subscription(seed.acme.id, SubscriptionAssign(plan_id=pro.id))

    assert exc_info.value.code == 409
    assert exc_info.value.detail["active_subscription_id"] == seed.subscription.id
    assert len(await _active_rows(uow, seed.acme.id)) == 1


async def test_racing_assignment_is_stopped_by_unique_active_key(uow, seed, monkeypatch):
    active_id = seed.subscription.id
    acme_id = seed.acme.id
    pro = await SubscriptionService(uow).create_plan(PlanCreate(name="Pro"))
    pro_id = pro.id

    # a concurrent writer has not committed yet when the check reads
    async def nothing_active(self, *args, **filters):
        return []

    monkeypatch.setattr(TenantSubscriptionRepository, "find_all", nothing_active)
    with pytest.raises(ActiveSubscriptionConflict) as exc_info:
        await SubscriptionService(uow).assign_subscription(acme_id, SubscriptionAssign(plan_id=pro_id))
    monkeypatch.undo()

    assert exc_info.value.code == 409
    assert exc_info.value.detail["active_subscription_id"] == active_id
    assert [s.id for s in await _active_rows(uow, acme_id)] == [active_id]
    assert (await ModuleAccessService(uow).check_access(acme_id, "crm")).has_access is True


async def test_inactive_rows_do_not_hold_the_active_key(uow, seed):
    service = SubscriptionService(uow)
    pro = await service.create_plan(PlanCreate(name="Pro"))
    await service.update_subscription_status(
        seed.subscription.id, SubscriptionStatusUpdate(status=SubscriptionStatus.CANCELLED),
    )
    assert seed.subscription.active_tenant_id is None

    new = await service.assign_subscription(seed.acme.id, SubscriptionAssign(plan_id=pro.id))
    assert new.active_tenant_id == seed.acme.id
    assert [s.id for s in await _active_rows(uow, seed.acme.id)] == [new.id]


async def test_failed_release_flush_is_backend_error(uow, seed, monkeypatch):
    pro = await SubscriptionService(uow).create_plan(PlanCreate(name="Pro"))

    async def lost_connection(self):
        raise OperationalError("UPDATE", {}, Exception("connection lost"))

    monkeypatch.setattr(UnitOfWork, "flush", lost_connection)
    with pytest.raises(BackendError) as exc_info:
        await SubscriptionService(uow).assign_subscription(
            seed.acme.id, SubscriptionAssign(plan_id=pro.id, replace_active=True),
        )
    assert exc_info.value.code == 502


async def test_replace_active_leaves_exactly_one(uow, seed):
    service = SubscriptionService(uow)
    pro = await service.create_plan(PlanCreate(name="Pro"))

    new = await service.assign_subscription(
        seed.acme.id,
        SubscriptionAssign(plan_id=pro.id, billing_cycle=BillingCycle.ANNUALLY, replace_active=True),
    )

    active = await _active_rows(uow, seed.acme.id)
    assert [s.id for s in active] == [new.id]
    assert seed.subscription.status == SubscriptionStatus.INACTIVE
    assert seed.subscription.ends_at is not None
    assert (await service.get_active_subscription(seed.acme.id)).plan_id == pro.id
    history = await service.list_subscriptions(seed.acme.id)
    assert {s.id for s in history} == {seed.subscription.id, new.id}


async def test_assign_validates_tenant_and_plan(uow, seed):
    service = SubscriptionService(uow)
    with pytest.raises(NotFoundError):
        await service.assign_subscription(9999, SubscriptionAssign(plan_id=seed.starter.id))
    with pytest.raises(NotFoundError):
        await service.assign_subscription(seed.globex.id, SubscriptionAssign(plan_id=9999))

    legacy = await service.create_plan(PlanCreate(name="Legacy", is_active=False))
    with pytest.raises(BusinessException):
        await service.assign_subscription(seed.globex.id, SubscriptionAssign(plan_id=legacy.id))


async def test_reactivating_enforces_single_active(uow, seed):
    service = SubscriptionService(uow)
    pro = await service.create_plan(PlanCreate(name="Pro"))
    new = await service.assign_subscription(seed.acme.id, SubscriptionAssign(plan_id=pro.id, replace_active=True))

    with pytest.raises(ActiveSubscriptionConflict):
        await service.update_subscription_status(
            seed.subscription.id, SubscriptionStatusUpdate(status=SubscriptionStatus.ACTIVE),
        )

    await service.update_subscription_status(
        seed.subscription.id, SubscriptionStatusUpdate(status=SubscriptionStatus.ACTIVE, replace_active=True),
    )
    assert [s.id for s in await _active_rows(uow, seed.acme.id)] == [seed.subscription.id]
    assert new.status == SubscriptionStatus.INACTIVE


async def test_cancelling_removes_access(uow, seed):
    service = SubscriptionService(uow)
    await service.update_subscription_status(
        seed.subscription.id, SubscriptionStatusUpdate(status=SubscriptionStatus.CANCELLED),
    )
    assert (await ModuleAccessService(uow).check_access(seed.acme.id, "crm")).has_access is False


async def test_save_permissions_replaces_plan_set(uow, seed):
    service = SubscriptionService(uow)
    rows = await service.save_plan_permissions(seed.starter.id, {
        "billing": PermissionEntry(is_enabled=True, limits={"invoices": 100}),
        "reports": PermissionEntry(is_enabled=True),
    })
    assert sorted(r.module_name for r in rows) == ["billing", "reports"]

    summary = await service.summarize_plan(seed.starter.id)
    assert summary.enabled_modules == 2
    assert summary.total_modules == 4
    assert summary.enabled_percentage == 50
    assert summary.key_limitations == ["100 invoices"]
    # crm lost its row: no longer granted
    assert (await ModuleAccessService(uow).check_access(seed.acme.id, "crm")).module is None


async def test_save_permissions_rejects_unknown_module(uow, seed):
    with pytest.raises(BusinessException) as exc_info:
        await SubscriptionService(uow).save_plan_permissions(
            seed.starter.id, {"teleport": PermissionEntry(is_enabled=True)},
        )
    assert "teleport" in exc_info.value.message


async def test_save_permissions_invalidates_subscribed_tenants(uow, seed, cache, member_user):
    identity = CacheIdentity.from_user(member_user)
    reader = ModuleAccessService(uow, cache, identity)
    assert (await reader.check_access(seed.acme.id, "reports")).has_access is False

    summaries = SubscriptionService(uow, cache, identity)
    assert (await summaries.summarize_plan(seed.starter.id)).enabled_modules == 1

    await SubscriptionService(uow, cache).save_plan_permissions(seed.starter.id, {
        "crm": PermissionEntry(is_enabled=True),
        "reports": PermissionEntry(is_enabled=True),
    })

    assert (await reader.check_access(seed.acme.id, "reports")).has_access is True
    assert (await summaries.summarize_plan(seed.starter.id)).enabled_modules == 2


async def test_summary_of_unknown_plan(uow, seed):
    with pytest.raises(NotFoundError):
        await SubscriptionService(uow).summarize_plan(9999)
