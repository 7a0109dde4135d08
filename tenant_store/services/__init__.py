"""Services Layer — async orchestration around the pure core.

Invariants:
    - Services reach the remote store only through the RemoteStore protocol
    - Tenant scoping, fault classification and retry live here, not in adapters
"""
