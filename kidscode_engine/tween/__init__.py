"""
Tween (animation) subsystem for the block engine.
"""

from kidscode_engine.tween.clock import (
    CancelToken,
    Clock,
    ManualClock,
    MonotonicClock,
    RunCancelled,
)
from kidscode_engine.tween.animation import clamp, lerp, tween, wait

__all__ = [
    "CancelToken",
    "Clock",
    "ManualClock",
    "MonotonicClock",
    "RunCancelled",
    "clamp",
    "lerp",
    "tween",
    "wait",
]
