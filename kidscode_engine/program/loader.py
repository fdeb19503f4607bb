"""
Loader for programs sent by the studio.

The editor serializes blocks with their nested bodies inlined, for example:

    {"id": "control_repeat_x1", "type": "control_repeat",
     "properties": {"times": 4},
     "children": [{"id": "motion_turn_right_x2", "type": "motion_turn_right",
                   "properties": {"degrees": 15}, "next": null}],
     "next": null}

Nested blocks are flattened into the program so they stay reachable by id;
the parent keeps only their ids. Id-only children are accepted as well.
"""

import logging
from typing import Any, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError

from kidscode_engine.program.model import Block, Program, normalize_kind

logger = logging.getLogger(__name__)


class ProgramFormatError(ValueError):
    """Raised when a program payload cannot be turned into blocks."""


class BlockPayload(BaseModel):
    """Wire schema for one block."""

    model_config = ConfigDict(extra="ignore")

    id: Union[str, int]
    type: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("type", "operationKind", "operation_kind"),
    )
    category: str | None = None
    label: str | None = None
    properties: dict[str, Any] | None = Field(
        default=None,
        validation_alias=AliasChoices("properties", "parameters"),
    )
    children: list[Union["BlockPayload", str, int]] | None = None
    next: Union[str, int, None] = None


class ProgramPayload(BaseModel):
    """Wire schema for a whole program."""

    blocks: list[BlockPayload] = Field(default_factory=list)


BlockPayload.model_rebuild()


def load_program(payload: Any) -> Program:
    """
    Build a Program from a decoded JSON payload.

    Args:
        payload: either a list of blocks or {"blocks": [...]}

    Returns:
        Program with nested bodies flattened

    Raises:
        ProgramFormatError: if the payload does not match the wire schema
    """
    if isinstance(payload, list):
        payload = {"blocks": payload}
    if not isinstance(payload, dict):
        raise ProgramFormatError(
            f"Program must be a list of blocks or an object, got {type(payload).__name__}"
        )

    try:
        parsed = ProgramPayload.model_validate(payload)
    except ValidationError as e:
        raise ProgramFormatError(str(e)) from e

    blocks: list[Block] = []
    for block_payload in parsed.blocks:
        _flatten(block_payload, blocks)

    program = Program(blocks)
    logger.debug(f"Loaded program with {len(program)} blocks")
    return program


def _flatten(payload: BlockPayload, out: list[Block]) -> None:
    """Append payload and its inlined children to out, parent first."""
    children = payload.children or []
    child_ids = tuple(
        child.id if isinstance(child, BlockPayload) else child
        for child in children
    )

    out.append(
        Block(
            id=payload.id,
            operation_kind=normalize_kind(payload.type),
            parameters=dict(payload.properties or {}),
            children=child_ids,
            next=payload.next,
            category=payload.category,
            label=payload.label,
        )
    )

    for child in children:
        if isinstance(child, BlockPayload):
            _flatten(child, out)
