"""
Actor and stage state.
NO HOST DEPENDENCIES.

The stage owns the mutable visual state of every actor for the duration of
one run. ActorState values are immutable; update() swaps in a patched copy
so snapshots handed to listeners never change underneath them.
"""

import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Callable, Iterable

from kidscode_engine.constants import (
    INITIAL_HEADING,
    INITIAL_SCALE,
    INITIAL_X,
    INITIAL_Y,
)

logger = logging.getLogger(__name__)

ActorId = str | int
StageListener = Callable[["StageState"], None]


class SpeechKind(str, Enum):
    SAY = "say"
    THINK = "think"


@dataclass(frozen=True)
class Speech:
    """A speech or thought bubble. No bubble is represented by None."""

    kind: SpeechKind
    text: str

    @classmethod
    def say(cls, text: str) -> "Speech":
        return cls(SpeechKind.SAY, text)

    @classmethod
    def think(cls, text: str) -> "Speech":
        return cls(SpeechKind.THINK, text)

    def to_dict(self) -> dict[str, str]:
        return {"type": self.kind.value, "text": self.text}


@dataclass(frozen=True)
class ActorDeclaration:
    """An actor as declared by the host."""

    id: ActorId
    name: str = ""
    image_ref: str = ""


@dataclass(frozen=True)
class Background:
    image_ref: str
    name: str = ""

    def to_dict(self) -> dict[str, str]:
        return {"image_ref": self.image_ref, "name": self.name}


@dataclass(frozen=True)
class ActorState:
    """
    Visual state of one actor.
    Position is stage-centred; heading is in degrees with 0 facing north.
    """

    id: ActorId
    name: str = ""
    image_ref: str = ""
    x: float = INITIAL_X
    y: float = INITIAL_Y
    heading: float = INITIAL_HEADING
    scale: float = INITIAL_SCALE
    visible: bool = True
    speech: Speech | None = None

    @classmethod
    def from_declaration(cls, declaration: ActorDeclaration) -> "ActorState":
        return cls(
            id=declaration.id,
            name=declaration.name,
            image_ref=declaration.image_ref,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "image_ref": self.image_ref,
            "x": self.x,
            "y": self.y,
            "heading": self.heading,
            "scale": self.scale,
            "visible": self.visible,
            "speech": self.speech.to_dict() if self.speech else None,
        }


class StageState:
    """
    Roster of actor states plus an optional background.
    Listeners are called after every reset and every update.
    """

    def __init__(self) -> None:
        self._actors: dict[ActorId, ActorState] = {}
        self._background: Background | None = None
        self._listeners: list[StageListener] = []

    @property
    def background(self) -> Background | None:
        return self._background

    @property
    def actors(self) -> list[ActorState]:
        """Actor states in roster order."""
        return list(self._actors.values())

    def __len__(self) -> int:
        return len(self._actors)

    def reset(
        self,
        actors: Iterable[ActorDeclaration],
        background: Background | None = None,
    ) -> None:
        """Replace the roster; every actor starts from the default state."""
        self._actors = {}
        for declaration in actors:
            if declaration.id in self._actors:
                logger.warning(f"Duplicate actor id {declaration.id!r} ignored")
                continue
            self._actors[declaration.id] = ActorState.from_declaration(declaration)
        self._background = background
        self._notify()

    def get(self, actor_id: ActorId | None) -> ActorState | None:
        if actor_id is None:
            return None
        return self._actors.get(actor_id)

    def first_actor_id(self) -> ActorId | None:
        for actor_id in self._actors:
            return actor_id
        return None

    def update(self, actor_id: ActorId | None, **patch: Any) -> None:
        """
        Merge a partial state into an actor.
        Unknown actor ids are ignored.
        """
        current = self.get(actor_id)
        if current is None:
            return
        self._actors[actor_id] = replace(current, **patch)
        self._notify()

    def snapshot(self) -> list[dict[str, Any]]:
        """Plain-data view of every actor for the host to paint."""
        return [state.to_dict() for state in self._actors.values()]

    def subscribe(self, listener: StageListener) -> None:
        self._listeners.append(listener)

    def unsubscribe(self, listener: StageListener) -> None:
        try:
            self._listeners.remove(listener)
        except ValueError:
            pass

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception as e:
                # A broken observer must not abort the run
                logger.warning(f"Stage listener {listener!r} failed: {e}", exc_info=True)
