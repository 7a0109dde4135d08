"""Retry Executor — bounded exponential-backoff retry driven by fault classification.

Invariants:
    - Delay before retry n (zero-based) is at least base_delay_ms * 2**n,
      unless max_delay_ms caps it
    - Non-retryable faults stop after the failing attempt
    - The last Fault is raised (chained from the original) when attempts run out
    - Only the awaiting task sleeps; CancelledError is never caught

Design Decisions:
    - Jitter is opt-in and upward-only (0-25%) so the backoff floor always holds
    - sleep injected (asyncio.sleep by default) so tests observe delays without waiting
"""

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from typing import TypeVar

from tenant_store.core.faults import classify
from tenant_store.infrastructure.observability import fault_fields

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RetryExecutor:
    """Runs an async operation, retrying retryable faults with backoff."""

    def __init__(
        self,
        max_attempts: int = 3,
        base_delay_ms: int = 1000,
        max_delay_ms: int | None = None,
        jitter: bool = False,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.max_attempts = max_attempts
        self.base_delay_ms = base_delay_ms
        self.max_delay_ms = max_delay_ms
        self.jitter = jitter
        self._sleep = sleep

    async def run(
        self,
        operation: Callable[[], Awaitable[T]],
        max_attempts: int | None = None,
        base_delay_ms: int | None = None,
    ) -> T:
        attempts = max(
            1, self.max_attempts if max_attempts is None else max_attempts,
        )
        base = self.base_delay_ms if base_delay_ms is None else base_delay_ms

        for attempt in range(attempts):
            try:
                return await operation()
            except Exception as e:
                fault = classify(e)
                if not fault.retryable or attempt >= attempts - 1:
                    if fault is e:
                        raise
                    raise fault from e
                delay = self._backoff(attempt, base)
                logger.warning(
                    f"Retryable fault, retry after {delay}ms: {fault.message}",
                    extra={**fault_fields(fault), "attempt": attempt + 1},
                )
                await self._sleep(delay / 1000)
        raise AssertionError("unreachable")  # pragma: no cover

    def _backoff(self, attempt: int, base_delay_ms: int) -> int:
        delay = (2 ** attempt) * base_delay_ms
        if self.max_delay_ms is not None:
            delay = min(self.max_delay_ms, delay)
        if self.jitter:
            delay = int(delay * random.uniform(1.0, 1.25))  # nosec B311
        return delay
