"""
Built-in operation handlers for motion, looks, control and event blocks.

Every handler acts on the context's target actor; the engine only calls a
handler once it has checked that the target exists.
"""

import logging
import math
from typing import Any

from kidscode_engine.constants import (
    DEFAULT_DEGREES,
    DEFAULT_SAY_MESSAGE,
    DEFAULT_STEPS,
    DEFAULT_THINK_MESSAGE,
    DEFAULT_WAIT_SECONDS,
    DIRECTIONAL_MOVE_DISTANCE,
    GOTO_GRID_LIMIT,
    GOTO_GRID_SCALE,
    MOVE_DURATION_MS,
    SHOW_HIDE_DURATION_MS,
    SPEECH_DURATION_MS,
    STAGE_LIMIT,
    STEP_SIZE,
    TURN_DURATION_MS,
)
from kidscode_engine.engine.context import ExecutionContext
from kidscode_engine.engine.registry import HandlerRegistry
from kidscode_engine.program.model import Block, OperationKind
from kidscode_engine.stage.state import Speech
from kidscode_engine.tween.animation import clamp, lerp

logger = logging.getLogger(__name__)


def number_parameter(block: Block, name: str, default: float) -> float:
    """
    Read a numeric parameter.
    Missing, null, non-numeric or non-finite values fall back to default.
    """
    value: Any = block.parameters.get(name)
    if value is None:
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        logger.debug(f"Block {block.id!r}: {name}={value!r} is not a number, using {default}")
        return default
    if not math.isfinite(number):
        return default
    return number


def repeat_times(block: Block) -> int:
    """
    Iteration count for a repeatCount block, never negative.
    A block without a usable count skips its body.
    """
    return max(0, int(number_parameter(block, "times", 0)))


def text_parameter(block: Block, name: str, default: str) -> str:
    """Read a text parameter; missing, null or empty text falls back to default."""
    text = str(block.parameter(name, ""))
    return text if text else default


def round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


# =============================================================================
# MOTION
# =============================================================================

async def glide_to(ctx: ExecutionContext, target_x: float, target_y: float) -> None:
    """Tween the target actor's position to (target_x, target_y)."""
    start = ctx.target()
    start_x, start_y = start.x, start.y

    def on_frame(progress: float) -> None:
        ctx.update_target(
            x=lerp(start_x, target_x, progress),
            y=lerp(start_y, target_y, progress),
        )

    await ctx.tween(MOVE_DURATION_MS, on_frame)


async def turn_by(ctx: ExecutionContext, degrees: float) -> None:
    """Tween the target actor's heading by degrees. No wrapping."""
    start_heading = ctx.target().heading
    target_heading = start_heading + degrees

    def on_frame(progress: float) -> None:
        ctx.update_target(heading=lerp(start_heading, target_heading, progress))

    await ctx.tween(TURN_DURATION_MS, on_frame)


async def _move_by(ctx: ExecutionContext, dx: float, dy: float) -> None:
    actor = ctx.target()
    await glide_to(ctx, actor.x + dx, actor.y + dy)


async def move_up(ctx: ExecutionContext, block: Block) -> None:
    await _move_by(ctx, 0, DIRECTIONAL_MOVE_DISTANCE)


async def move_down(ctx: ExecutionContext, block: Block) -> None:
    await _move_by(ctx, 0, -DIRECTIONAL_MOVE_DISTANCE)


async def move_left(ctx: ExecutionContext, block: Block) -> None:
    await _move_by(ctx, -DIRECTIONAL_MOVE_DISTANCE, 0)


async def move_right(ctx: ExecutionContext, block: Block) -> None:
    await _move_by(ctx, DIRECTIONAL_MOVE_DISTANCE, 0)


async def move_steps(ctx: ExecutionContext, block: Block) -> None:
    """
    Move along the current heading. Heading 0 points to -y in model space,
    which the host paints as up because it flips the y axis.
    """
    steps = number_parameter(block, "steps", DEFAULT_STEPS)
    distance = steps * STEP_SIZE

    actor = ctx.target()
    radians = math.radians(actor.heading - 90)
    target_x = clamp(actor.x + distance * math.cos(radians), -STAGE_LIMIT, STAGE_LIMIT)
    target_y = clamp(actor.y + distance * math.sin(radians), -STAGE_LIMIT, STAGE_LIMIT)

    await glide_to(ctx, target_x, target_y)


async def turn_right(ctx: ExecutionContext, block: Block) -> None:
    await turn_by(ctx, number_parameter(block, "degrees", DEFAULT_DEGREES))


async def turn_left(ctx: ExecutionContext, block: Block) -> None:
    await turn_by(ctx, -number_parameter(block, "degrees", DEFAULT_DEGREES))


async def goto_xy(ctx: ExecutionContext, block: Block) -> None:
    """Glide to a grid cell; raw coordinates are clamped before scaling."""
    raw_x = number_parameter(block, "x", 0)
    raw_y = number_parameter(block, "y", 0)
    grid_x = clamp(round_half_up(raw_x), -GOTO_GRID_LIMIT, GOTO_GRID_LIMIT)
    grid_y = clamp(round_half_up(raw_y), -GOTO_GRID_LIMIT, GOTO_GRID_LIMIT)

    await glide_to(ctx, grid_x * GOTO_GRID_SCALE, grid_y * GOTO_GRID_SCALE)


# =============================================================================
# LOOKS
# =============================================================================

async def say(ctx: ExecutionContext, block: Block) -> None:
    # Bubble stays up until overwritten or the next run resets the stage
    ctx.update_target(speech=Speech.say(text_parameter(block, "message", DEFAULT_SAY_MESSAGE)))
    await ctx.wait(SPEECH_DURATION_MS)


async def think(ctx: ExecutionContext, block: Block) -> None:
    ctx.update_target(speech=Speech.think(text_parameter(block, "message", DEFAULT_THINK_MESSAGE)))
    await ctx.wait(SPEECH_DURATION_MS)


async def show(ctx: ExecutionContext, block: Block) -> None:
    ctx.update_target(visible=True)
    await ctx.wait(SHOW_HIDE_DURATION_MS)


async def hide(ctx: ExecutionContext, block: Block) -> None:
    ctx.update_target(visible=False)
    await ctx.wait(SHOW_HIDE_DURATION_MS)


# =============================================================================
# CONTROL / EVENTS
# =============================================================================

async def wait_seconds(ctx: ExecutionContext, block: Block) -> None:
    seconds = number_parameter(block, "seconds", DEFAULT_WAIT_SECONDS)
    await ctx.wait(max(0.0, seconds) * 1000)


async def no_op(ctx: ExecutionContext, block: Block) -> None:
    """Start hats and loop headers have no effect of their own."""
    return None


def register_builtin_handlers(registry: HandlerRegistry) -> None:
    registry.register(OperationKind.START, no_op)
    registry.register(OperationKind.REPEAT_COUNT, no_op)
    registry.register(OperationKind.REPEAT_FOREVER, no_op)

    registry.register(OperationKind.MOVE_STEPS, move_steps)
    registry.register(OperationKind.MOVE_UP, move_up)
    registry.register(OperationKind.MOVE_DOWN, move_down)
    registry.register(OperationKind.MOVE_LEFT, move_left)
    registry.register(OperationKind.MOVE_RIGHT, move_right)
    registry.register(OperationKind.TURN_RIGHT, turn_right)
    registry.register(OperationKind.TURN_LEFT, turn_left)
    registry.register(OperationKind.GOTO_XY, goto_xy)

    registry.register(OperationKind.SAY, say)
    registry.register(OperationKind.THINK, think)
    registry.register(OperationKind.SHOW, show)
    registry.register(OperationKind.HIDE, hide)

    registry.register(OperationKind.WAIT, wait_seconds)


def default_registry() -> HandlerRegistry:
    """A fresh registry holding the built-in handlers."""
    registry = HandlerRegistry()
    register_builtin_handlers(registry)
    return registry
