"""
Bounded execution of chain and indexer lookups.

Every external read goes through LookupRunner, which caps in-flight lookups,
applies a per-lookup timeout and turns transport errors into LookupFailure.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Iterable, TypeVar

from tally_audit.core.exceptions import AuditError, LookupFailure

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_LOOKUP_TIMEOUT = 60.0


class LookupRunner:
    def __init__(self, timeout: float | None = DEFAULT_LOOKUP_TIMEOUT, concurrency: int = 1):
        """
        Args:
            timeout: Seconds before a single lookup is abandoned (None disables)
            concurrency: Maximum lookups in flight at once (1 runs them one at a time)
        """
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        if timeout is not None and timeout <= 0:
            raise ValueError("timeout must be positive")
        self.timeout = timeout
        self.concurrency = concurrency
        self._semaphore = asyncio.Semaphore(concurrency)
        self.calls = 0

    async def call(self, operation: str, func: Callable[..., Awaitable[T]], *args: Any) -> T:
        """Run one lookup, converting timeouts and transport errors to LookupFailure."""
        details = {"operation": operation, "args": [str(arg) for arg in args]}
        async with self._semaphore:
            self.calls += 1
            logger.debug("Lookup %s%s", operation, tuple(args))
            try:
                return await asyncio.wait_for(func(*args), timeout=self.timeout)
            except asyncio.TimeoutError as exc:
                raise LookupFailure(
                    f"{operation} timed out after {self.timeout}s", details
                ) from exc
            except AuditError:
                raise
            except Exception as exc:
                raise LookupFailure(f"{operation} failed: {exc}", details) from exc


async def gather_all(aws: Iterable[Awaitable[T]]) -> list[T]:
    """Await every awaitable, cancelling the rest as soon as one fails."""
    tasks = [asyncio.ensure_future(aw) for aw in aws]
    try:
        return list(await asyncio.gather(*tasks))
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise
