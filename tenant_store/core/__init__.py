"""Core Layer — pure domain logic, no IO, no async.

Invariants:
    - No module in core/ imports from services/, api/ or infrastructure/
    - All functions are pure and deterministic; the only state is owned by
      explicitly constructed instances (KeyMapper, UsageTracker)
"""
