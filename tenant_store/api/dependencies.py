"""API Dependencies — hand the composition root's instances to route handlers.

Invariants:
    - Instances live on app.state (set by create_app), never in module globals
"""

from fastapi import Request

from tenant_store.core.usage import UsageTracker
from tenant_store.services.data_access import DataAccessLayer


def get_data_access(request: Request) -> DataAccessLayer:
    return request.app.state.data_access


def get_usage_tracker(request: Request) -> UsageTracker:
    return request.app.state.usage_tracker
