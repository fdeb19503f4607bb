"""
Program model: blocks, operation kinds and traversal helpers.
NO HOST DEPENDENCIES.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, Iterator

logger = logging.getLogger(__name__)

BlockId = str | int


class OperationKind(str, Enum):
    """Operation tags understood by the built-in handlers."""

    START = "start"
    MOVE_STEPS = "moveSteps"
    MOVE_UP = "moveUp"
    MOVE_DOWN = "moveDown"
    MOVE_LEFT = "moveLeft"
    MOVE_RIGHT = "moveRight"
    TURN_RIGHT = "turnRight"
    TURN_LEFT = "turnLeft"
    GOTO_XY = "gotoXY"
    SAY = "say"
    THINK = "think"
    SHOW = "show"
    HIDE = "hide"
    WAIT = "wait"
    REPEAT_COUNT = "repeatCount"
    REPEAT_FOREVER = "repeatForever"


# Block type names used by the studio palette
KIND_ALIASES: dict[str, str] = {
    "events_when_start": OperationKind.START.value,
    "motion_move_steps": OperationKind.MOVE_STEPS.value,
    "motion_move_up": OperationKind.MOVE_UP.value,
    "motion_move_down": OperationKind.MOVE_DOWN.value,
    "motion_move_left": OperationKind.MOVE_LEFT.value,
    "motion_move_right": OperationKind.MOVE_RIGHT.value,
    "motion_turn_right": OperationKind.TURN_RIGHT.value,
    "motion_turn_left": OperationKind.TURN_LEFT.value,
    "motion_goto_xy": OperationKind.GOTO_XY.value,
    "looks_say": OperationKind.SAY.value,
    "looks_think": OperationKind.THINK.value,
    "looks_show": OperationKind.SHOW.value,
    "looks_hide": OperationKind.HIDE.value,
    "control_wait": OperationKind.WAIT.value,
    "control_repeat": OperationKind.REPEAT_COUNT.value,
    "control_forever": OperationKind.REPEAT_FOREVER.value,
}

CONTAINER_KINDS = frozenset({
    OperationKind.REPEAT_COUNT.value,
    OperationKind.REPEAT_FOREVER.value,
})


def normalize_kind(tag: str) -> str:
    """
    Map a studio type name to its canonical operation tag.
    Unrecognized tags are returned unchanged.
    """
    if isinstance(tag, OperationKind):
        return tag.value
    return KIND_ALIASES.get(tag, tag)


@dataclass(frozen=True)
class Block:
    """
    A single instruction node.

    children holds the ids of the nested body and only matters for
    container kinds; next links to the following block in the same chain.
    """

    id: BlockId
    operation_kind: str
    parameters: dict[str, Any] = field(default_factory=dict)
    children: tuple[BlockId, ...] = ()
    next: BlockId | None = None
    category: str | None = None
    label: str | None = None

    @property
    def is_container(self) -> bool:
        return self.operation_kind in CONTAINER_KINDS

    def parameter(self, name: str, default: Any = None) -> Any:
        """Return a parameter value, or default when it is missing or null."""
        value = self.parameters.get(name)
        return default if value is None else value

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.operation_kind,
            "category": self.category,
            "label": self.label,
            "properties": dict(self.parameters),
            "children": list(self.children),
            "next": self.next,
        }


class Program:
    """
    All blocks of one project, addressable by id.
    Read-only for the duration of a run.
    """

    def __init__(self, blocks: Iterable[Block] = ()) -> None:
        self._blocks: dict[BlockId, Block] = {}
        for block in blocks:
            if block.id in self._blocks:
                # First declaration wins, same as a front-to-back search
                logger.warning(f"Duplicate block id {block.id!r} ignored")
                continue
            self._blocks[block.id] = block

    def __len__(self) -> int:
        return len(self._blocks)

    def __iter__(self) -> Iterator[Block]:
        return iter(self._blocks.values())

    def __contains__(self, block_id: object) -> bool:
        return block_id in self._blocks

    @property
    def blocks(self) -> list[Block]:
        """All blocks in declaration order."""
        return list(self._blocks.values())

    def find_by_id(self, block_id: BlockId | None) -> Block | None:
        """
        Look up a block anywhere in the program, nested bodies included.
        A miss is not an error: callers treat it as end of chain.
        """
        if block_id is None:
            return None
        return self._blocks.get(block_id)

    def start_blocks(self) -> list[Block]:
        """Entry points, in declaration order."""
        return [
            block for block in self._blocks.values()
            if block.operation_kind == OperationKind.START.value
        ]

    def next(self, block: Block) -> Block | None:
        """Resolve the block that follows in the same chain."""
        return self.find_by_id(block.next)

    def to_list(self) -> list[dict[str, Any]]:
        return [block.to_dict() for block in self._blocks.values()]
