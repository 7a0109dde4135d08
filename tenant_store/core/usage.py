"""Usage Tracker — per-resource usage vs. plan quota bookkeeping for feature gating.

Invariants:
    - No IO; state is two dicts (limits, usage) owned by one tracker instance
    - update_usage is an absolute set, never an increment
    - A resource absent from limits, or with an unbounded limit, is always allowed
    - get_warnings() follows the limit map's declaration order
    - Severity is critical at >= 95%, warning at >= 80%

Design Decisions:
    - Unbounded limits are math.inf (None accepted and normalized at set_limits)
    - percentage reports current usage, excluding the requested increment
"""

import math
from collections.abc import Mapping
from dataclasses import dataclass

from tenant_store.core.domain_types import WarningSeverity
from tenant_store.core.plans import limits_for_plan

NEAR_LIMIT_THRESHOLD = 0.8
CRITICAL_PERCENTAGE = 95.0


@dataclass(frozen=True)
class UsageCheck:
    allowed: bool
    remaining: float
    current: int
    limit: float
    percentage: float


@dataclass(frozen=True)
class UsageStats:
    usage: int
    limit: float
    percentage: float
    remaining: float


@dataclass(frozen=True)
class UsageWarning:
    resource: str
    message: str
    severity: WarningSeverity


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def _percentage(usage: int, limit: float) -> float:
    if math.isinf(limit):
        return 0.0
    if limit <= 0:
        return 100.0 if usage >= limit else 0.0
    return usage / limit * 100


class UsageTracker:
    """In-memory usage counters checked against quota limits."""

    def __init__(self, limits: Mapping[str, float | None] | None = None):
        self._limits: dict[str, float] = {}
        self._usage: dict[str, int] = {}
        if limits:
            self.set_limits(limits)

    def set_limits(self, limits: Mapping[str, float | None]) -> None:
        self._limits = {
            resource: math.inf if limit is None else limit
            for resource, limit in limits.items()
        }

    def apply_plan(self, plan: str | None) -> None:
        """Set limits from a subscription tier (unknown plans fall back to free)."""
        self.set_limits(limits_for_plan(plan))

    def update_usage(self, resource: str, count: int) -> None:
        self._usage[resource] = count

    def limit_for(self, resource: str) -> float:
        return self._limits.get(resource, math.inf)

    def usage_for(self, resource: str) -> int:
        return self._usage.get(resource, 0)

    def check_limit(self, resource: str, increment: int = 1) -> UsageCheck:
        current = self.usage_for(resource)
        limit = self.limit_for(resource)
        if math.isinf(limit):
            return UsageCheck(
                allowed=True, remaining=math.inf, current=current,
                limit=math.inf, percentage=0.0,
            )
        new_usage = current + increment
        return UsageCheck(
            allowed=new_usage <= limit,
            remaining=max(0, limit - new_usage),
            current=current,
            limit=limit,
            percentage=_percentage(current, limit),
        )

    def get_usage_stats(self) -> dict[str, UsageStats]:
        stats = {}
        for resource, limit in self._limits.items():
            usage = self.usage_for(resource)
            stats[resource] = UsageStats(
                usage=usage,
                limit=limit,
                percentage=_percentage(usage, limit),
                remaining=math.inf if math.isinf(limit) else max(0, limit - usage),
            )
        return stats

    def is_near_limit(
        self, resource: str, threshold: float = NEAR_LIMIT_THRESHOLD,
    ) -> bool:
        limit = self.limit_for(resource)
        if resource not in self._limits or math.isinf(limit):
            return False
        return _percentage(self.usage_for(resource), limit) >= threshold * 100

    def get_warnings(self) -> list[UsageWarning]:
        warnings = []
        for resource, stats in self.get_usage_stats().items():
            if not self.is_near_limit(resource):
                continue
            severity = (
                WarningSeverity.CRITICAL
                if stats.percentage >= CRITICAL_PERCENTAGE
                else WarningSeverity.WARNING
            )
            warnings.append(UsageWarning(
                resource=resource,
                message=(
                    f"You're using {_round_half_up(stats.percentage)}% "
                    f"of your {resource} limit"
                ),
                severity=severity,
            ))
        return warnings
