"""
Execution context passed to every operation handler.
"""

import asyncio
from collections import Counter
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Callable

from kidscode_engine.program.model import Program
from kidscode_engine.stage.state import ActorId, ActorState, StageState
from kidscode_engine.tween.animation import DEFAULT_FRAME_INTERVAL_MS, tween, wait
from kidscode_engine.tween.clock import CancelToken, Clock


class RunStatus(str, Enum):
    COMPLETED = "completed"
    NO_START_BLOCK = "no_start_block"
    CANCELLED = "cancelled"
    IGNORED = "ignored"


@dataclass
class RunReport:
    """Outcome and counters for one run."""

    status: RunStatus = RunStatus.COMPLETED
    operations_executed: int = 0
    operations_by_kind: Counter = field(default_factory=Counter)
    unknown_kinds: list[str] = field(default_factory=list)
    elapsed_ms: float = 0.0

    def record(self, kind: str) -> None:
        self.operations_executed += 1
        self.operations_by_kind[kind] += 1

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "operations_executed": self.operations_executed,
            "operations_by_kind": dict(self.operations_by_kind),
            "unknown_kinds": list(self.unknown_kinds),
            "elapsed_ms": self.elapsed_ms,
        }


@dataclass
class ExecutionContext:
    """
    Everything a handler needs for one chain: the program, the stage, the
    time source, the stop token and the actor the chain is bound to.

    owner_actor_id of None targets the first actor in the roster.
    """

    program: Program
    stage: StageState
    clock: Clock
    token: CancelToken
    report: RunReport
    frame_interval_ms: float = DEFAULT_FRAME_INTERVAL_MS
    owner_actor_id: ActorId | None = None
    # Per-actor locks, only set under concurrent scheduling
    actor_locks: dict[ActorId, asyncio.Lock] | None = None

    @property
    def target_id(self) -> ActorId | None:
        if self.owner_actor_id is not None:
            return self.owner_actor_id
        return self.stage.first_actor_id()

    def target(self) -> ActorState | None:
        return self.stage.get(self.target_id)

    def update_target(self, **patch: Any) -> None:
        self.stage.update(self.target_id, **patch)

    def bound_to(self, actor_id: ActorId | None) -> "ExecutionContext":
        """Copy of this context targeting another actor."""
        return replace(self, owner_actor_id=actor_id)

    def lock_for_target(self) -> asyncio.Lock | None:
        if self.actor_locks is None:
            return None
        target_id = self.target_id
        if target_id not in self.actor_locks:
            self.actor_locks[target_id] = asyncio.Lock()
        return self.actor_locks[target_id]

    async def tween(
        self,
        duration_ms: float,
        on_frame: Callable[[float], None],
        on_done: Callable[[], None] | None = None,
    ) -> None:
        await tween(
            duration_ms,
            on_frame,
            on_done,
            clock=self.clock,
            token=self.token,
            frame_interval_ms=self.frame_interval_ms,
        )

    async def wait(self, duration_ms: float) -> None:
        await wait(duration_ms, clock=self.clock, token=self.token)
