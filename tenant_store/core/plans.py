"""Subscription Plans — quota limits per tier and subscription status arithmetic.

Invariants:
    - Three tiers in upgrade order: free < professional < unlimited
    - Unknown or missing plans resolve to the free tier's limits
    - Pure functions; `now` is always passed in
"""

import math
from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class PlanTier(str, Enum):
    FREE = "free"
    PROFESSIONAL = "professional"
    UNLIMITED = "unlimited"


class SubscriptionStatus(str, Enum):
    ACTIVE = "active"
    TRIAL = "trial"
    PAST_DUE = "past_due"
    CANCELLED = "cancelled"


PLAN_ORDER: tuple[PlanTier, ...] = (
    PlanTier.FREE, PlanTier.PROFESSIONAL, PlanTier.UNLIMITED,
)

PLAN_LIMITS: dict[PlanTier, dict[str, float]] = {
    PlanTier.FREE: {"stations": 1, "equipment": 50, "users": 3},
    PlanTier.PROFESSIONAL: {"stations": 3, "equipment": 300, "users": 10},
    PlanTier.UNLIMITED: {
        "stations": math.inf, "equipment": math.inf, "users": math.inf,
    },
}

_SECONDS_PER_DAY = 24 * 60 * 60


@dataclass(frozen=True)
class Subscription:
    """Department subscription as read from the department record."""
    plan: str | None = None
    status: str | None = None
    trial_ends_at: datetime | None = None


def resolve_plan(plan: str | None) -> PlanTier:
    try:
        return PlanTier(plan)
    except ValueError:
        return PlanTier.FREE


def limits_for_plan(plan: str | None) -> dict[str, float]:
    return dict(PLAN_LIMITS[resolve_plan(plan)])


def next_plan(plan: str | None) -> PlanTier | None:
    index = PLAN_ORDER.index(resolve_plan(plan))
    if index + 1 < len(PLAN_ORDER):
        return PLAN_ORDER[index + 1]
    return None


def can_upgrade(plan: str | None) -> bool:
    return next_plan(plan) is not None


def is_subscription_active(sub: Subscription | None, now: datetime) -> bool:
    """Active subscriptions, and trials that have not ended yet."""
    if sub is None:
        return False
    if sub.status == SubscriptionStatus.ACTIVE.value:
        return True
    if sub.status == SubscriptionStatus.TRIAL.value:
        return sub.trial_ends_at is None or now < sub.trial_ends_at
    return False


def days_until_trial_end(sub: Subscription | None, now: datetime) -> int | None:
    """Whole days left in the trial (rounded up, never negative); None off-trial."""
    if (
        sub is None
        or sub.status != SubscriptionStatus.TRIAL.value
        or sub.trial_ends_at is None
    ):
        return None
    remaining = (sub.trial_ends_at - now).total_seconds()
    return max(0, math.ceil(remaining / _SECONDS_PER_DAY))
