"""Subscription plans and the unit quotas attached to them."""

from enum import Enum
from typing import Any


class PlanType(str, Enum):
    STARTER = "starter"
    ESSENTIAL = "essential"
    PROFESSIONAL = "professional"
    BUSINESS = "business"


class UserType(str, Enum):
    LANDLORD = "landlord"
    OTHER = "other"


PLAN_UNIT_LIMITS: dict[PlanType, int] = {
    PlanType.STARTER: 5,
    PlanType.ESSENTIAL: 20,
    PlanType.PROFESSIONAL: 50,
    PlanType.BUSINESS: 100,
}

DEFAULT_PLAN = PlanType.STARTER
DEFAULT_MAX_PROPERTIES = PLAN_UNIT_LIMITS[DEFAULT_PLAN]


def parse_plan(value: Any) -> PlanType | None:
    """Return the PlanType for a raw value, or None when unrecognized."""
    try:
        return PlanType(value)
    except (ValueError, TypeError):
        return None


def max_properties_for(plan: Any) -> int:
    """Unit quota for a plan; unknown plans get the starter quota."""
    parsed = parse_plan(plan)
    if parsed is None:
        return DEFAULT_MAX_PROPERTIES
    return PLAN_UNIT_LIMITS[parsed]
