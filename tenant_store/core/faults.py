"""Fault Classifier — maps raw remote-store errors into the bounded Fault taxonomy.

Invariants:
    - classify() is pure and deterministic and never raises
    - Message heuristics are checked before error codes, in a fixed order
    - Only NETWORK faults are retryable
    - An unclassifiable error still yields a Fault whose message names the original

Design Decisions:
    - Accepts RemoteError, any Exception, or a {message, code} mapping: adapters
      differ in how they surface faults, the classifier does not care
    - Original message kept on Fault.detail for logs; Fault.message is user-facing
"""

from collections.abc import Mapping
from typing import Any

from tenant_store.core.domain_types import FaultKind
from tenant_store.core.errors import ErrorContext, Fault

UNIQUE_VIOLATION = "23505"
FOREIGN_KEY_VIOLATION = "23503"
INSUFFICIENT_PRIVILEGE = "42501"

_CODE_RULES: dict[str, tuple[FaultKind, str]] = {
    UNIQUE_VIOLATION: (
        FaultKind.UNIQUE_CONSTRAINT,
        "This record already exists. Please use a different value.",
    ),
    FOREIGN_KEY_VIOLATION: (
        FaultKind.FOREIGN_KEY_CONSTRAINT,
        "This operation references data that does not exist.",
    ),
    INSUFFICIENT_PRIVILEGE: (
        FaultKind.INSUFFICIENT_PRIVILEGE,
        "You do not have permission to perform this action.",
    ),
}


def extract_message_and_code(raw: Any) -> tuple[str, str | None]:
    """Pull (message, code) out of whatever the remote boundary raised."""
    if isinstance(raw, Mapping):
        message = raw.get("message")
        code = raw.get("code")
    elif isinstance(raw, BaseException):
        message = getattr(raw, "message", None) or str(raw)
        code = getattr(raw, "code", None)
    else:
        message, code = raw, None
    message = "" if message is None else str(message)
    code = None if code in (None, "") else str(code)
    return message, code


def classify(raw: Any, context: ErrorContext | None = None) -> Fault:
    """Classify a raw remote error. Pure — never raises."""
    if isinstance(raw, Fault):
        return raw

    message, code = extract_message_and_code(raw)
    lowered = message.lower()
    original = message or type(raw).__name__

    if "fetch" in lowered or "network" in lowered:
        return Fault(
            FaultKind.NETWORK,
            "Network error. Please check your connection and try again.",
            retryable=True, remote_code=code, detail=original, context=context,
        )
    if "Invalid login credentials" in message:
        return Fault(
            FaultKind.INVALID_CREDENTIALS,
            "Invalid email or password.",
            remote_code=code, detail=original, context=context,
        )
    if "row-level security" in lowered or "row level security" in lowered:
        return Fault(
            FaultKind.ACCESS_DENIED,
            "Access denied. You do not have permission to access this data.",
            remote_code=code, detail=original, context=context,
        )
    if code in _CODE_RULES:
        kind, text = _CODE_RULES[code]
        return Fault(
            kind, text, remote_code=code, detail=original, context=context,
        )
    if code is not None:
        return Fault(
            FaultKind.UNKNOWN, f"Database error: {original}",
            remote_code=code, detail=original, context=context,
        )
    return Fault(
        FaultKind.UNKNOWN, f"Unexpected error: {original}",
        detail=original, context=context,
    )
