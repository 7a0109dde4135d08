"""Usage Routes — quota checks and warnings for feature-gating consumers.

Invariants:
    - Reads never mutate counters; PUT sets an absolute count
    - Unknown resources are unbounded (always allowed)
    - PUT /plan replaces every limit with the tier's limits; counters are kept
"""

from fastapi import APIRouter, Depends, Query

from tenant_store.api.dependencies import get_usage_tracker
from tenant_store.core.usage import UsageTracker
from tenant_store.schemas.usage import (
    PlanUpdate, UsageCheckResponse, UsageReport, UsageStatsResponse,
    UsageUpdate, UsageWarningResponse,
)

router = APIRouter(prefix="/api/v1/usage", tags=["usage"])


def _report(tracker: UsageTracker) -> UsageReport:
    return UsageReport(
        resources={
            resource: UsageStatsResponse.from_stats(stats)
            for resource, stats in tracker.get_usage_stats().items()
        },
        warnings=[
            UsageWarningResponse.from_warning(w) for w in tracker.get_warnings()
        ],
    )


@router.get("/", response_model=UsageReport)
async def usage_report(tracker: UsageTracker = Depends(get_usage_tracker)):
    return _report(tracker)


@router.get("/warnings", response_model=list[UsageWarningResponse])
async def usage_warnings(tracker: UsageTracker = Depends(get_usage_tracker)):
    return [UsageWarningResponse.from_warning(w) for w in tracker.get_warnings()]


@router.put("/plan", response_model=UsageReport)
async def apply_plan(
    body: PlanUpdate,
    tracker: UsageTracker = Depends(get_usage_tracker),
):
    """Switch quota limits to a subscription tier."""
    tracker.apply_plan(body.plan.value)
    return _report(tracker)


@router.get("/{resource}/check", response_model=UsageCheckResponse)
async def check_limit(
    resource: str,
    increment: int = Query(1, ge=0),
    tracker: UsageTracker = Depends(get_usage_tracker),
):
    return UsageCheckResponse.from_check(
        resource, tracker.check_limit(resource, increment),
    )


@router.put("/{resource}", response_model=UsageCheckResponse)
async def update_usage(
    resource: str,
    body: UsageUpdate,
    tracker: UsageTracker = Depends(get_usage_tracker),
):
    tracker.update_usage(resource, body.count)
    return UsageCheckResponse.from_check(resource, tracker.check_limit(resource, 0))
