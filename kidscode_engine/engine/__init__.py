"""
Execution engine for block programs.
"""

from kidscode_engine.engine.context import ExecutionContext, RunReport, RunStatus
from kidscode_engine.engine.engine import NO_START_BLOCK, BlockEngine
from kidscode_engine.engine.handlers import default_registry
from kidscode_engine.engine.registry import (
    HandlerModule,
    HandlerRegistry,
    OperationHandler,
    load_handler_modules,
)

__all__ = [
    "BlockEngine",
    "ExecutionContext",
    "HandlerModule",
    "HandlerRegistry",
    "NO_START_BLOCK",
    "OperationHandler",
    "RunReport",
    "RunStatus",
    "default_registry",
    "load_handler_modules",
]
