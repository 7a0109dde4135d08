"""Usage & Health Schemas — Pydantic response models for the HTTP surface.

Invariants:
    - Unbounded limits/remaining (math.inf) are serialized as null
    - Severity uses the core WarningSeverity enum
"""

import math

from pydantic import BaseModel

from tenant_store.core.domain_types import WarningSeverity
from tenant_store.core.plans import PlanTier
from tenant_store.core.usage import UsageCheck, UsageStats, UsageWarning


def _finite(value: float) -> float | None:
    return None if math.isinf(value) else value


class UsageCheckResponse(BaseModel):
    resource: str
    allowed: bool
    remaining: float | None
    current: int
    limit: float | None
    percentage: float

    @classmethod
    def from_check(cls, resource: str, check: UsageCheck) -> "UsageCheckResponse":
        return cls(
            resource=resource,
            allowed=check.allowed,
            remaining=_finite(check.remaining),
            current=check.current,
            limit=_finite(check.limit),
            percentage=check.percentage,
        )


class UsageStatsResponse(BaseModel):
    usage: int
    limit: float | None
    percentage: float
    remaining: float | None

    @classmethod
    def from_stats(cls, stats: UsageStats) -> "UsageStatsResponse":
        return cls(
            usage=stats.usage,
            limit=_finite(stats.limit),
            percentage=stats.percentage,
            remaining=_finite(stats.remaining),
        )


class UsageWarningResponse(BaseModel):
    resource: str
    message: str
    severity: WarningSeverity

    @classmethod
    def from_warning(cls, warning: UsageWarning) -> "UsageWarningResponse":
        return cls(
            resource=warning.resource,
            message=warning.message,
            severity=warning.severity,
        )


class UsageReport(BaseModel):
    resources: dict[str, UsageStatsResponse]
    warnings: list[UsageWarningResponse]


class UsageUpdate(BaseModel):
    count: int


class PlanUpdate(BaseModel):
    plan: PlanTier
