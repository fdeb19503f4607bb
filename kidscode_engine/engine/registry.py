"""
Operation handler registry and extension loader.
"""

import importlib
import logging
from typing import Awaitable, Callable, Iterable, Protocol, runtime_checkable

from kidscode_engine.engine.context import ExecutionContext
from kidscode_engine.program.model import Block, OperationKind, normalize_kind

logger = logging.getLogger(__name__)

OperationHandler = Callable[[ExecutionContext, Block], Awaitable[None]]


class HandlerRegistry:
    """
    Maps operation kinds to async handlers.

    New kinds can be added without touching the dispatcher:

        @registry.register("changeSize")
        async def change_size(ctx, block):
            ...
    """

    def __init__(self) -> None:
        self._handlers: dict[str, OperationHandler] = {}

    def register(
        self,
        kind: str | OperationKind,
        handler: OperationHandler | None = None,
    ):
        """
        Register handler for kind. Without a handler, returns a decorator.
        Registering an existing kind replaces its handler.
        """
        key = normalize_kind(kind)

        def decorator(func: OperationHandler) -> OperationHandler:
            if key in self._handlers:
                logger.info(f"Replacing handler for operation '{key}'")
            self._handlers[key] = func
            return func

        if handler is not None:
            return decorator(handler)
        return decorator

    def unregister(self, kind: str | OperationKind) -> None:
        self._handlers.pop(normalize_kind(kind), None)

    def get(self, kind: str) -> OperationHandler | None:
        return self._handlers.get(kind)

    def __contains__(self, kind: object) -> bool:
        return kind in self._handlers

    def kinds(self) -> list[str]:
        return sorted(self._handlers)

    def copy(self) -> "HandlerRegistry":
        clone = HandlerRegistry()
        clone._handlers = dict(self._handlers)
        return clone


@runtime_checkable
class HandlerModule(Protocol):
    """
    Protocol that handler extension modules must implement.
    """

    def register_handlers(self, registry: HandlerRegistry) -> None:
        """Add or replace operation handlers on registry."""
        ...


def load_handler_modules(
    module_paths: Iterable[str],
    registry: HandlerRegistry,
) -> list[str]:
    """
    Import extension modules and let them register handlers.

    Args:
        module_paths: Python module paths (e.g., "my_package.sound_blocks")
        registry: registry the modules register into

    Returns:
        Module paths that loaded successfully
    """
    loaded: list[str] = []

    for module_path in module_paths:
        try:
            module = importlib.import_module(module_path)
        except ImportError as e:
            logger.error(f"Failed to import handler module {module_path}: {e}")
            continue

        if not isinstance(module, HandlerModule):
            logger.error(f"No register_handlers() found in {module_path}")
            continue

        module.register_handlers(registry)
        loaded.append(module_path)
        logger.info(f"Loaded handler module: {module_path}")

    return loaded
