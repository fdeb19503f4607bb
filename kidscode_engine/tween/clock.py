"""
Clocks and cooperative cancellation for the tween subsystem.
"""

import asyncio
import time
from typing import Protocol, runtime_checkable


class RunCancelled(Exception):
    """Raised at a suspension point once a stop has been requested."""


class CancelToken:
    """
    Shared stop flag checked at every resumption of a tween or wait.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    async def wait(self) -> None:
        """Block until cancel() is called."""
        await self._event.wait()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise RunCancelled()


@runtime_checkable
class Clock(Protocol):
    """
    Time source used by tweens and waits.
    """

    def now_ms(self) -> float:
        """Current time in milliseconds."""
        ...

    async def sleep(self, duration_ms: float, token: CancelToken | None = None) -> None:
        """
        Suspend for duration_ms.
        Raises RunCancelled if token is cancelled before or during the sleep.
        """
        ...


class MonotonicClock:
    """Wall-clock time backed by time.perf_counter()."""

    def now_ms(self) -> float:
        return time.perf_counter() * 1000

    async def sleep(self, duration_ms: float, token: CancelToken | None = None) -> None:
        seconds = max(0.0, duration_ms) / 1000

        if token is None:
            await asyncio.sleep(seconds)
            return

        token.raise_if_cancelled()

        # Wait for either the sleep time or the stop signal
        try:
            await asyncio.wait_for(token.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            # Normal interval elapsed
            return

        raise RunCancelled()


class ManualClock:
    """
    Virtual time that jumps forward on every sleep.

    Runs a whole program without real delays, which is what headless
    simulation and the tests want. Concurrent sleepers share one timeline,
    so under concurrent scheduling virtual time advances once per sleeper.
    """

    def __init__(self, start_ms: float = 0.0) -> None:
        self._now = start_ms

    def now_ms(self) -> float:
        return self._now

    def advance(self, duration_ms: float) -> None:
        self._now += max(0.0, duration_ms)

    async def sleep(self, duration_ms: float, token: CancelToken | None = None) -> None:
        if token is not None:
            token.raise_if_cancelled()

        self.advance(duration_ms)
        # Yield so other tasks (and stop requests) get a turn
        await asyncio.sleep(0)

        if token is not None:
            token.raise_if_cancelled()
