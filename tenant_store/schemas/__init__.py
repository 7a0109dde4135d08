"""Pydantic Schemas — response validation for API endpoints.

Invariants:
    - Schemas validate at system boundary (API responses)
    - Domain types from core/ used for enum fields
"""
