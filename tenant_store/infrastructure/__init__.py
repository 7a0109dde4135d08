"""Infrastructure Layer — remote store adapters and cross-cutting concerns.

Invariants:
    - Adapters implement core.store_protocols.RemoteStore
    - Every adapter failure surfaces as RemoteError(message, code?)
"""
