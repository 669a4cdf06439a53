"""Request pacing for shared remote registries.

Registries sit behind rate-limited endpoints, so the pipeline spaces its
calls with fixed delays. Delays go through a ``Clock`` so tests can swap in
a fake that records sleeps instead of waiting.
"""

import asyncio
import time
from typing import Any, Protocol


class Clock(Protocol):
    """Time source used for pacing and elapsed-time measurement."""

    def monotonic(self) -> float: ...

    async def sleep(self, seconds: float) -> None: ...


class SystemClock:
    """Real clock backed by ``time.monotonic`` and ``asyncio.sleep``."""

    def monotonic(self) -> float:
        return time.monotonic()

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)


class Pacer:
    """Fixed-interval delay between successive calls of one kind.

    Callers invoke ``pause()`` between operations, never after the last one.
    A zero interval turns pacing off without changing the call sites.
    """

    def __init__(self, interval: float, clock: Clock | None = None, name: str = "pacer"):
        """Initialize pacer.

        Args:
            interval: Seconds to wait on each pause
            clock: Time source (defaults to the system clock)
            name: Label used in status reporting
        """
        if interval < 0:
            raise ValueError(f"Pacing interval must be non-negative, got {interval}")
        self.interval = interval
        self.clock = clock or SystemClock()
        self.name = name
        self.pauses = 0
        self.total_delay = 0.0

    async def pause(self) -> None:
        """Wait one interval."""
        if self.interval <= 0:
            return
        await self.clock.sleep(self.interval)
        self.pauses += 1
        self.total_delay += self.interval

    def get_status(self) -> dict[str, Any]:
        """Get current pacer status."""
        return {
            "name": self.name,
            "interval": self.interval,
            "pauses": self.pauses,
            "total_delay": round(self.total_delay, 3),
        }
