"""
Current-user endpoints: profile, subscription and usage.
"""
import logging

from fastapi import APIRouter, Depends, status

from appforge.core.auth_dependency import get_current_user, get_store
from appforge.core.errors import NotFound
from appforge.schemas.user import SubscriptionRecord, UsageResponse, UserRecord
from appforge.services.quota_service import get_usage_for_response
from appforge.services.storage import JobStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/user", tags=["User"])


@router.get("/profile", response_model=UserRecord)
async def get_profile(user: UserRecord = Depends(get_current_user)):
    return user


@router.get("/subscription", response_model=SubscriptionRecord)
async def get_subscription(
    user: UserRecord = Depends(get_current_user),
    store: JobStore = Depends(get_store),
):
    subscription = await store.get_subscription(user.id)
    if subscription is None:
        raise NotFound("Subscription", user.id)
    return subscription


@router.get("/usage", response_model=UsageResponse, status_code=status.HTTP_200_OK)
async def get_usage(
    user: UserRecord = Depends(get_current_user),
    store: JobStore = Depends(get_store),
):
    """
    Get generation usage for the authenticated user.

    Returns:
    - plan: Current plan (free, pro, enterprise)
    - used: Completed generations
    - limit / remaining: None on unlimited plans
    - unlimited: Whether the plan is uncapped

    Requires authentication via Bearer token.
    """
    usage_data = await get_usage_for_response(store, user.id)

    logger.debug(f"Usage summary requested: user_id={user.id}, plan={usage_data['plan']}")

    return usage_data
