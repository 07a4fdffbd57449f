"""Rate-limited call sequencer.

Spaces consecutive calls by a minimum interval so batches of engine
requests do not trip the remote rate limiter.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import AsyncIterator, Awaitable, Callable, Iterable
from contextlib import asynccontextmanager
from typing import Any, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CallSequencer:
    """Enforces a minimum spacing between call starts.

    The first call proceeds immediately; each later call waits until
    ``min_interval`` seconds have passed since the previous one started.
    Waiting suspends only the caller's coroutine.

    Example:
        sequencer = CallSequencer(min_interval=1.0)
        for workflow_id in ids:
            async with sequencer.slot():
                await client.fetch_workflow(workflow_id)
    """

    def __init__(
        self,
        min_interval: float = 1.0,
        name: str = "",
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        if min_interval < 0:
            raise ValueError("min_interval must be >= 0")
        self.min_interval = min_interval
        self.name = name
        self._clock = clock
        self._sleep = sleep
        self._lock = asyncio.Lock()
        self._last_start: float | None = None

        # Stats
        self._total_calls = 0
        self._total_waited = 0.0

    async def wait(self) -> float:
        """Wait for the next free slot and claim it.

        Returns:
            Seconds spent waiting
        """
        async with self._lock:
            waited = 0.0
            if self._last_start is not None:
                remaining = self.min_interval - (self._clock() - self._last_start)
                if remaining > 0:
                    logger.debug(
                        "Sequencer %s waiting %.2fs before next call", self.name or "-", remaining
                    )
                    await self._sleep(remaining)
                    waited = remaining
            self._last_start = self._clock()
            self._total_calls += 1
            self._total_waited += waited
            return waited

    @asynccontextmanager
    async def slot(self) -> AsyncIterator[None]:
        """Context manager form of :meth:`wait`."""
        await self.wait()
        yield

    async def run(self, calls: Iterable[Callable[[], Awaitable[T]]]) -> list[T]:
        """Run zero-argument coroutine factories one after another, spaced out.

        Exceptions propagate; calls after a failing one are not started.
        """
        results: list[T] = []
        for call in calls:
            await self.wait()
            results.append(await call())
        return results

    def reset(self) -> None:
        """Forget the previous call so the next one proceeds immediately."""
        self._last_start = None

    def get_stats(self) -> dict[str, Any]:
        """Get sequencer statistics."""
        return {
            "name": self.name,
            "min_interval": self.min_interval,
            "total_calls": self._total_calls,
            "total_wait_seconds": round(self._total_waited, 2),
        }
