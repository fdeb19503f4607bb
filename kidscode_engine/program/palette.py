"""
Block palette: the catalogue of block templates offered by the studio.

Templates carry the category, label, colour and default parameters of each
block kind. create_block() stamps out a fresh instance with a unique id.
Sound and click-event templates are listed for the editor but have no
built-in handler; the engine treats them as unknown operations.
"""

import random
import string
from dataclasses import dataclass, field
from typing import Any

from kidscode_engine.constants import (
    DEFAULT_DEGREES,
    DEFAULT_REPEAT_TIMES,
    DEFAULT_SAY_MESSAGE,
    DEFAULT_STEPS,
    DEFAULT_THINK_MESSAGE,
    DEFAULT_WAIT_SECONDS,
)
from kidscode_engine.program.model import Block, CONTAINER_KINDS, OperationKind, normalize_kind

ID_SUFFIX_LENGTH = 7
_ID_ALPHABET = string.ascii_lowercase + string.digits


@dataclass(frozen=True)
class Category:
    id: str
    name: str
    color: str


@dataclass(frozen=True)
class BlockTemplate:
    """Palette entry for one block kind."""

    kind: str
    category: str
    label: str
    color: str
    parameters: dict[str, Any] = field(default_factory=dict)

    @property
    def is_container(self) -> bool:
        return self.kind in CONTAINER_KINDS

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "category": self.category,
            "label": self.label,
            "color": self.color,
            "parameters": dict(self.parameters),
            "is_container": self.is_container,
        }


CATEGORIES: list[Category] = [
    Category("motion", "Motion", "#4C97FF"),
    Category("looks", "Looks", "#9966FF"),
    Category("sound", "Sound", "#CF63CF"),
    Category("control", "Control", "#FFAB19"),
    Category("events", "Events", "#FFBF00"),
]

_COLORS = {category.id: category.color for category in CATEGORIES}


def _template(kind: str, category: str, label: str, **parameters: Any) -> BlockTemplate:
    return BlockTemplate(
        kind=kind,
        category=category,
        label=label,
        color=_COLORS[category],
        parameters=parameters,
    )


TEMPLATES: list[BlockTemplate] = [
    # Motion
    _template(OperationKind.MOVE_STEPS.value, "motion", f"Move {DEFAULT_STEPS} steps", steps=DEFAULT_STEPS),
    _template(OperationKind.MOVE_UP.value, "motion", "Move up"),
    _template(OperationKind.MOVE_DOWN.value, "motion", "Move down"),
    _template(OperationKind.MOVE_LEFT.value, "motion", "Move left"),
    _template(OperationKind.MOVE_RIGHT.value, "motion", "Move right"),
    _template(OperationKind.TURN_RIGHT.value, "motion", f"Turn right {DEFAULT_DEGREES} degrees", degrees=DEFAULT_DEGREES),
    _template(OperationKind.TURN_LEFT.value, "motion", f"Turn left {DEFAULT_DEGREES} degrees", degrees=DEFAULT_DEGREES),
    _template(OperationKind.GOTO_XY.value, "motion", "Go to x: 0, y: 0", x=0, y=0),
    # Looks
    _template(OperationKind.SAY.value, "looks", f"Say {DEFAULT_SAY_MESSAGE}", message=DEFAULT_SAY_MESSAGE),
    _template(OperationKind.THINK.value, "looks", f"Think {DEFAULT_THINK_MESSAGE}", message=DEFAULT_THINK_MESSAGE),
    _template(OperationKind.SHOW.value, "looks", "Show"),
    _template(OperationKind.HIDE.value, "looks", "Hide"),
    # Sound (no built-in handler)
    _template("sound_play", "sound", "Play sound meow", sound="meow"),
    _template("sound_stop", "sound", "Stop all sounds"),
    # Control
    _template(OperationKind.WAIT.value, "control", f"Wait {DEFAULT_WAIT_SECONDS} second", seconds=DEFAULT_WAIT_SECONDS),
    _template(OperationKind.REPEAT_COUNT.value, "control", f"Repeat {DEFAULT_REPEAT_TIMES} times", times=DEFAULT_REPEAT_TIMES),
    _template(OperationKind.REPEAT_FOREVER.value, "control", "Forever"),
    # Events
    _template(OperationKind.START.value, "events", "When program starts"),
    _template("events_when_clicked", "events", "When character clicked"),
]

_BY_KIND = {template.kind: template for template in TEMPLATES}


def get_template(kind: str) -> BlockTemplate | None:
    """Find the template for a kind (studio aliases accepted)."""
    return _BY_KIND.get(normalize_kind(kind))


def templates_by_category() -> dict[str, list[BlockTemplate]]:
    grouped: dict[str, list[BlockTemplate]] = {category.id: [] for category in CATEGORIES}
    for template in TEMPLATES:
        grouped[template.category].append(template)
    return grouped


def new_block_id(kind: str, rng: random.Random | None = None) -> str:
    """Generate an id of the form <kind>_<7 random chars>."""
    chooser = rng or random
    suffix = "".join(chooser.choices(_ID_ALPHABET, k=ID_SUFFIX_LENGTH))
    return f"{kind}_{suffix}"


def create_block(kind: str, rng: random.Random | None = None, **overrides: Any) -> Block:
    """
    Stamp out a new block from its palette template.

    Container blocks start with an empty body. Keyword overrides replace
    template parameters.

    Raises:
        KeyError: if no template exists for kind
    """
    template = get_template(kind)
    if template is None:
        raise KeyError(kind)

    parameters = dict(template.parameters)
    parameters.update(overrides)

    return Block(
        id=new_block_id(template.kind, rng),
        operation_kind=template.kind,
        parameters=parameters,
        children=(),
        next=None,
        category=template.category,
        label=template.label,
    )
