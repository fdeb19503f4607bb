"""
Block engine implementation.
Walks a program from each start block and drives actor state through the
tween subsystem.
"""

import asyncio
import logging
from typing import Callable, Iterable, Literal

from kidscode_engine.constants import FOREVER_ITERATIONS, UNKNOWN_OPERATION_DELAY_MS
from kidscode_engine.engine.context import ExecutionContext, RunReport, RunStatus
from kidscode_engine.engine.handlers import default_registry, repeat_times
from kidscode_engine.engine.registry import HandlerRegistry
from kidscode_engine.program.model import Block, OperationKind, Program
from kidscode_engine.stage.state import ActorDeclaration, Background, StageState
from kidscode_engine.tween.animation import DEFAULT_FRAME_INTERVAL_MS
from kidscode_engine.tween.clock import CancelToken, Clock, MonotonicClock, RunCancelled

logger = logging.getLogger(__name__)

NO_START_BLOCK = "no_start_block"

ScheduleMode = Literal["sequential", "concurrent"]
DiagnosticListener = Callable[[str], None]
FrameListener = Callable[[StageState], None]


class BlockEngine:
    """
    Interprets block programs against a stage.

    Idle -> Running -> Idle. A run that is already in progress makes further
    run() calls no-ops; stop() asks the in-flight run to end at its next
    suspension point.
    """

    def __init__(
        self,
        stage: StageState | None = None,
        registry: HandlerRegistry | None = None,
        clock: Clock | None = None,
        frame_interval_ms: float = DEFAULT_FRAME_INTERVAL_MS,
        schedule_mode: ScheduleMode = "sequential",
    ) -> None:
        self._stage = stage if stage is not None else StageState()
        self._registry = registry if registry is not None else default_registry()
        self._clock = clock if clock is not None else MonotonicClock()
        self._frame_interval_ms = frame_interval_ms
        self._schedule_mode = schedule_mode

        self._is_running = False
        self._token: CancelToken | None = None
        self._diagnostic_listeners: list[DiagnosticListener] = []
        self._last_report: RunReport | None = None

    @property
    def stage(self) -> StageState:
        return self._stage

    @property
    def registry(self) -> HandlerRegistry:
        return self._registry

    @property
    def clock(self) -> Clock:
        return self._clock

    @property
    def is_running(self) -> bool:
        """Whether a run is in progress."""
        return self._is_running

    @property
    def last_report(self) -> RunReport | None:
        return self._last_report

    def add_diagnostic_listener(self, listener: DiagnosticListener) -> None:
        self._diagnostic_listeners.append(listener)

    def remove_diagnostic_listener(self, listener: DiagnosticListener) -> None:
        try:
            self._diagnostic_listeners.remove(listener)
        except ValueError:
            pass

    def stop(self) -> bool:
        """
        Request the current run to stop.
        Returns True if a run was in progress.
        """
        if not self._is_running or self._token is None:
            return False
        self._token.cancel()
        logger.info("Stop requested")
        return True

    async def run(
        self,
        program: Program,
        actors: Iterable[ActorDeclaration],
        background: Background | None = None,
        on_frame: FrameListener | None = None,
    ) -> RunReport:
        """
        Reset the stage and execute every start chain.

        on_frame, if given, is subscribed to the stage for the duration of
        the run and sees every tween frame and discrete mutation.
        """
        if self._is_running:
            logger.debug("Run requested while running, ignoring")
            return RunReport(status=RunStatus.IGNORED)

        self._is_running = True
        self._token = CancelToken()
        report = RunReport()
        started_ms = self._clock.now_ms()

        if on_frame is not None:
            self._stage.subscribe(on_frame)

        try:
            self._stage.reset(actors, background)

            start_blocks = program.start_blocks()
            if not start_blocks:
                logger.info("Program has no start block")
                report.status = RunStatus.NO_START_BLOCK
                self._emit_diagnostic(NO_START_BLOCK)
                return report

            base = ExecutionContext(
                program=program,
                stage=self._stage,
                clock=self._clock,
                token=self._token,
                report=report,
                frame_interval_ms=self._frame_interval_ms,
            )

            logger.info(
                f"Run started: {len(start_blocks)} start block(s), "
                f"{len(self._stage)} actor(s), mode={self._schedule_mode}"
            )

            try:
                if self._schedule_mode == "concurrent":
                    await self._run_concurrent(base, start_blocks)
                else:
                    for block in start_blocks:
                        await self.execute_chain(self._context_for(base, block), block)
            except RunCancelled:
                report.status = RunStatus.CANCELLED
                logger.info("Run cancelled")

            return report
        finally:
            if on_frame is not None:
                self._stage.unsubscribe(on_frame)
            report.elapsed_ms = self._clock.now_ms() - started_ms
            self._last_report = report
            self._token = None
            self._is_running = False
            logger.info(
                f"Run finished: {report.status.value}, "
                f"{report.operations_executed} operation(s) in {report.elapsed_ms:.0f}ms"
            )

    async def _run_concurrent(self, base: ExecutionContext, start_blocks: list[Block]) -> None:
        """
        Give every start chain its own task. Operations hold their actor's
        lock so one actor never runs two operations at once.
        """
        base.actor_locks = {}
        tasks = [
            asyncio.create_task(self.execute_chain(self._context_for(base, block), block))
            for block in start_blocks
        ]
        results = await asyncio.gather(*tasks, return_exceptions=True)

        cancelled = False
        for result in results:
            if isinstance(result, RunCancelled):
                cancelled = True
            elif isinstance(result, BaseException):
                # Fail-fast: handler bugs propagate
                raise result
        if cancelled:
            raise RunCancelled()

    def _context_for(self, base: ExecutionContext, start_block: Block) -> ExecutionContext:
        """Bind a start chain to the actor named by its 'actor' parameter, if any."""
        owner = start_block.parameters.get("actor")
        if owner is None:
            return base
        return base.bound_to(owner)

    async def execute_chain(self, ctx: ExecutionContext, block: Block | None) -> None:
        """
        Execute block and everything reachable through its next links.
        Container bodies are drained completely on every iteration before
        the chain moves on.
        """
        while block is not None:
            await self.execute_operation(ctx, block)

            if block.operation_kind == OperationKind.REPEAT_COUNT.value:
                for _ in range(repeat_times(block)):
                    await self._execute_body(ctx, block)
            elif block.operation_kind == OperationKind.REPEAT_FOREVER.value:
                for _ in range(FOREVER_ITERATIONS):
                    await self._execute_body(ctx, block)

            block = ctx.program.next(block)

    async def _execute_body(self, ctx: ExecutionContext, block: Block) -> None:
        for child_id in block.children:
            await self.execute_chain(ctx, ctx.program.find_by_id(child_id))

    async def execute_operation(self, ctx: ExecutionContext, block: Block) -> None:
        """Dispatch one block to its handler."""
        if ctx.target() is None:
            # Nothing to animate: empty roster or unknown owner actor
            return

        kind = block.operation_kind
        ctx.report.record(kind)
        handler = self._registry.get(kind)

        if handler is None:
            logger.warning(f"Unknown block type: {kind} (block {block.id!r})")
            ctx.report.unknown_kinds.append(kind)
            await ctx.wait(UNKNOWN_OPERATION_DELAY_MS)
            return

        lock = ctx.lock_for_target()
        if lock is None:
            await handler(ctx, block)
            return

        async with lock:
            await handler(ctx, block)

    def _emit_diagnostic(self, code: str) -> None:
        for listener in list(self._diagnostic_listeners):
            try:
                listener(code)
            except Exception as e:
                logger.warning(f"Diagnostic listener failed for {code}: {e}", exc_info=True)
