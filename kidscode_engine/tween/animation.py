"""
Time-based interpolation, the engine's only suspension primitive besides
fixed waits.
"""

from typing import Callable

from kidscode_engine.tween.clock import CancelToken, Clock, MonotonicClock

DEFAULT_FRAME_INTERVAL_MS = 16

_default_clock = MonotonicClock()


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def lerp(start: float, end: float, progress: float) -> float:
    return start + (end - start) * progress


async def tween(
    duration_ms: float,
    on_frame: Callable[[float], None],
    on_done: Callable[[], None] | None = None,
    *,
    clock: Clock | None = None,
    token: CancelToken | None = None,
    frame_interval_ms: float = DEFAULT_FRAME_INTERVAL_MS,
) -> None:
    """
    Drive on_frame with progress in [0, 1] until it reaches 1, then call
    on_done.

    Progress is elapsed clock time over duration, so perceived speed does
    not depend on the frame rate. A non-positive duration produces a single
    frame at progress 1.

    Raises:
        RunCancelled: if token is cancelled at any resumption
    """
    clock = clock if clock is not None else _default_clock
    start = clock.now_ms()

    while True:
        if token is not None:
            token.raise_if_cancelled()

        elapsed = clock.now_ms() - start
        if duration_ms <= 0:
            progress = 1.0
        else:
            progress = clamp(elapsed / duration_ms, 0.0, 1.0)

        on_frame(progress)

        if progress >= 1.0:
            break

        # Never sleep past the end of the tween
        remaining = duration_ms - elapsed
        await clock.sleep(min(frame_interval_ms, remaining), token)

    if on_done is not None:
        on_done()


async def wait(
    duration_ms: float,
    *,
    clock: Clock | None = None,
    token: CancelToken | None = None,
) -> None:
    """Suspend the calling sequence for a fixed duration."""
    clock = clock if clock is not None else _default_clock
    await clock.sleep(max(0.0, duration_ms), token)
