"""
Quota service for generation limits.

Checks a user's subscription before a job is created and formats usage for
the API. The counter itself is only incremented by the generator when a job
completes.
"""
import logging
from typing import Dict, Optional

from appforge.core.errors import NotFound, QuotaExceeded
from appforge.core.plan_limits import is_capped_plan
from appforge.schemas.user import SubscriptionRecord
from appforge.services.storage import JobStore

logger = logging.getLogger(__name__)


def check_generation_quota(subscription: Optional[SubscriptionRecord], in_flight: int = 0) -> None:
    """
    Raise QuotaExceeded when a capped plan has no generations left.

    Jobs still pending or generating hold a slot, since each of them will be
    counted once it completes. A missing subscription is not blocked.

    Raises:
        QuotaExceeded: if used + in_flight >= limit on a capped plan
    """
    if subscription is None:
        return
    committed = subscription.generations_used + in_flight
    if is_capped_plan(subscription.plan) and committed >= subscription.generations_limit:
        logger.warning(
            f"Quota exceeded: user_id={subscription.user_id}, plan={subscription.plan}, "
            f"limit={subscription.generations_limit}, used={subscription.generations_used}, "
            f"in_flight={in_flight}"
        )
        raise QuotaExceeded(
            plan=subscription.plan,
            limit=subscription.generations_limit,
            used=subscription.generations_used,
            in_flight=in_flight,
        )


async def get_usage_for_response(store: JobStore, user_id: str) -> Dict:
    """
    Get usage data formatted for GET /api/user/usage.

    Args:
        store: Job store
        user_id: User ID

    Returns:
        Dictionary with plan, status, used, limit, remaining and unlimited
    """
    subscription = await store.get_subscription(user_id)
    if subscription is None:
        raise NotFound("Subscription", user_id)

    unlimited = not is_capped_plan(subscription.plan)
    if unlimited:
        limit = None
        remaining = None
    else:
        limit = subscription.generations_limit
        remaining = max(0, limit - subscription.generations_used)

    return {
        "plan": subscription.plan,
        "status": subscription.status,
        "used": subscription.generations_used,
        "limit": limit,
        "remaining": remaining,
        "unlimited": unlimited,
    }
