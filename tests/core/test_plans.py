"""Subscription Plans — tier limits, upgrade path and trial arithmetic."""

import math
from datetime import datetime, timedelta, timezone

from tenant_store.core.plans import (
    PlanTier, Subscription, can_upgrade, days_until_trial_end,
    is_subscription_active, limits_for_plan, next_plan,
)

NOW = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)


def test_free_tier_limits():
    assert limits_for_plan("free") == {"stations": 1, "equipment": 50, "users": 3}


def test_unknown_or_missing_plan_falls_back_to_free():
    assert limits_for_plan(None) == limits_for_plan("free")
    assert limits_for_plan("platinum") == limits_for_plan("free")


def test_unlimited_tier_is_unbounded():
    assert all(math.isinf(v) for v in limits_for_plan("unlimited").values())


def test_limits_are_copies():
    limits = limits_for_plan("free")
    limits["equipment"] = 1
    assert limits_for_plan("free")["equipment"] == 50


def test_upgrade_path():
    assert next_plan("free") is PlanTier.PROFESSIONAL
    assert next_plan("professional") is PlanTier.UNLIMITED
    assert next_plan("unlimited") is None
    assert can_upgrade("free") is True
    assert can_upgrade("unlimited") is False


def test_active_subscription():
    assert is_subscription_active(Subscription("professional", "active"), NOW)


def test_trial_active_until_end():
    sub = Subscription("free", "trial", NOW + timedelta(days=3))
    assert is_subscription_active(sub, NOW) is True
    assert is_subscription_active(sub, NOW + timedelta(days=4)) is False


def test_trial_without_end_is_active():
    assert is_subscription_active(Subscription("free", "trial"), NOW) is True


def test_cancelled_or_missing_subscription_inactive():
    assert is_subscription_active(Subscription("free", "cancelled"), NOW) is False
    assert is_subscription_active(None, NOW) is False


def test_days_until_trial_end_rounds_up():
    sub = Subscription("free", "trial", NOW + timedelta(days=2, hours=1))
    assert days_until_trial_end(sub, NOW) == 3


def test_days_until_trial_end_never_negative():
    sub = Subscription("free", "trial", NOW - timedelta(days=5))
    assert days_until_trial_end(sub, NOW) == 0


def test_days_until_trial_end_none_when_not_on_trial():
    assert days_until_trial_end(Subscription("free", "active"), NOW) is None
    assert days_until_trial_end(Subscription("free", "trial"), NOW) is None
