"""
Host bridge: the thin interface the studio UI talks to.

One bridge per host session. It owns a stage and an engine, exposes run()
and stop(), and pushes a snapshot to its listeners on every frame.
"""

import asyncio
import logging
from typing import Any, Callable, Iterable

from kidscode_engine.engine.context import RunReport, RunStatus
from kidscode_engine.engine.engine import BlockEngine, DiagnosticListener, ScheduleMode
from kidscode_engine.engine.handlers import default_registry
from kidscode_engine.engine.registry import HandlerRegistry
from kidscode_engine.program.model import Program
from kidscode_engine.stage.state import ActorDeclaration, Background, StageState
from kidscode_engine.tween.animation import DEFAULT_FRAME_INTERVAL_MS
from kidscode_engine.tween.clock import Clock

logger = logging.getLogger(__name__)

SnapshotListener = Callable[[dict[str, Any]], None]


class HostBridge:
    """
    Runs programs for one host session and reports stage state back.
    """

    def __init__(
        self,
        registry: HandlerRegistry | None = None,
        clock: Clock | None = None,
        frame_interval_ms: float = DEFAULT_FRAME_INTERVAL_MS,
        schedule_mode: ScheduleMode = "sequential",
    ) -> None:
        self._stage = StageState()
        self._engine = BlockEngine(
            stage=self._stage,
            registry=registry if registry is not None else default_registry(),
            clock=clock,
            frame_interval_ms=frame_interval_ms,
            schedule_mode=schedule_mode,
        )
        self._listeners: list[SnapshotListener] = []
        self._task: asyncio.Task | None = None
        self._stage.subscribe(self._on_stage_change)

    @property
    def engine(self) -> BlockEngine:
        return self._engine

    @property
    def is_running(self) -> bool:
        return self._engine.is_running

    @property
    def is_idle(self) -> bool:
        """No run in progress and no background run pending."""
        return not self.is_running and (self._task is None or self._task.done())

    @property
    def last_report(self) -> RunReport | None:
        return self._engine.last_report

    def add_listener(self, listener: SnapshotListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: SnapshotListener) -> None:
        try:
            self._listeners.remove(listener)
        except ValueError:
            pass

    def add_diagnostic_listener(self, listener: DiagnosticListener) -> None:
        self._engine.add_diagnostic_listener(listener)

    def snapshot(self) -> dict[str, Any]:
        """Current read model of the stage."""
        background = self._stage.background
        return {
            "actors": self._stage.snapshot(),
            "background": background.to_dict() if background else None,
            "running": self._engine.is_running,
        }

    async def run(
        self,
        program: Program,
        actors: Iterable[ActorDeclaration],
        background: Background | None = None,
    ) -> RunReport:
        """Execute program to completion (or until stopped)."""
        return await self._engine.run(program, list(actors), background)

    def start(
        self,
        program: Program,
        actors: Iterable[ActorDeclaration],
        background: Background | None = None,
        on_finished: Callable[[RunReport], Any] | None = None,
    ) -> asyncio.Task | None:
        """
        Start a run in the background.
        Returns None if a run is already in progress.
        """
        if not self.is_idle:
            logger.debug("Start requested while running, ignoring")
            return None

        async def _run() -> RunReport:
            report = await self.run(program, actors, background)
            if on_finished is not None and report.status != RunStatus.IGNORED:
                on_finished(report)
            return report

        self._task = asyncio.create_task(_run())
        return self._task

    def stop(self) -> bool:
        """Ask the current run to stop at its next suspension point."""
        return self._engine.stop()

    async def wait_idle(self) -> None:
        """Wait for a background run started with start() to finish."""
        if self._task is not None:
            await asyncio.gather(self._task, return_exceptions=True)

    async def close(self) -> None:
        self.stop()
        await self.wait_idle()
        self._stage.unsubscribe(self._on_stage_change)
        self._listeners.clear()

    def _on_stage_change(self, stage: StageState) -> None:
        if not self._listeners:
            return
        snapshot = self.snapshot()
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception as e:
                logger.warning(f"Snapshot listener failed: {e}", exc_info=True)
