"""
Plan-based generation limits.

Single source of truth for how many completed generations each plan allows.
None means unlimited.
"""
from typing import Dict, Optional

DEFAULT_PLAN = "free"

PLAN_LIMITS: Dict[str, Optional[int]] = {
    "free": 2,
    "pro": None,  # Unlimited
    "enterprise": None,
}

# Only these plans are blocked once the counter reaches the limit
CAPPED_PLANS = {"free"}


def get_plan_limit(plan_type: str) -> Optional[int]:
    """
    Get the generation limit for a plan.
    
    Args:
        plan_type: Plan type (free, pro, enterprise)
        
    Returns:
        Generation limit (int) or None for unlimited
    """
    plan_type = plan_type.lower() if plan_type else DEFAULT_PLAN
    return PLAN_LIMITS.get(plan_type, PLAN_LIMITS[DEFAULT_PLAN])


def is_capped_plan(plan_type: str) -> bool:
    """Check whether the plan enforces its generation limit."""
    return (plan_type or DEFAULT_PLAN).lower() in CAPPED_PLANS
