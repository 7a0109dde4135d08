"""Tenant Store — tenant-scoped data-access layer over an opaque remote store.

Invariants:
    - Package root contains no executable code (import side-effects prohibited)
"""
