"""
Unit tests for quota service.
Tests quota checking, usage reporting, and plan limits.
"""
import pytest

from appforge.core.errors import NotFound, QuotaExceeded
from appforge.core.plan_limits import get_plan_limit, is_capped_plan
from appforge.services.quota_service import check_generation_quota, get_usage_for_response


def test_plan_limits():
    assert get_plan_limit("free") == 2
    assert get_plan_limit("pro") is None
    assert get_plan_limit("enterprise") is None
    assert get_plan_limit("unknown") == 2
    assert is_capped_plan("FREE")
    assert not is_capped_plan("pro")


async def test_free_user_within_limit(store, user):
    check_generation_quota(await store.get_subscription(user.id))


async def test_free_user_at_limit_is_blocked(store, user):
    await store.update_subscription(user.id, {"generations_used": 2})

    with pytest.raises(QuotaExceeded) as exc_info:
        check_generation_quota(await store.get_subscription(user.id))

    assert exc_info.value.status_code == 403
    assert exc_info.value.details == {"plan": "free", "limit": 2, "used": 2, "in_flight": 0, "remaining": 0}


async def test_pro_user_is_never_blocked(store, user):
    await store.update_subscription(user.id, {"plan": "pro", "generations_used": 500})
    check_generation_quota(await store.get_subscription(user.id))


def test_missing_subscription_is_not_blocked():
    check_generation_quota(None)


async def test_usage_response_free_plan(store, user):
    await store.increment_usage(user.id)

    usage = await get_usage_for_response(store, user.id)

    assert usage == {
        "plan": "free",
        "status": "active",
        "used": 1,
        "limit": 2,
        "remaining": 1,
        "unlimited": False,
    }


async def test_usage_response_unlimited_plan(store, user):
    await store.update_subscription(user.id, {"plan": "enterprise"})

    usage = await get_usage_for_response(store, user.id)

    assert usage["unlimited"] is True
    assert usage["limit"] is None
    assert usage["remaining"] is None


async def test_usage_response_unknown_user(store):
    with pytest.raises(NotFound):
        await get_usage_for_response(store, "missing")


async def test_jobs_in_flight_hold_quota_slots(store, user):
    await store.update_subscription(user.id, {"generations_used": 1})

    with pytest.raises(QuotaExceeded) as exc_info:
        check_generation_quota(await store.get_subscription(user.id), in_flight=1)

    assert exc_info.value.details["used"] == 1
    assert exc_info.value.details["in_flight"] == 1


async def test_in_flight_jobs_do_not_block_pro_plan(store, user):
    await store.update_subscription(user.id, {"plan": "pro"})
    check_generation_quota(await store.get_subscription(user.id), in_flight=50)
