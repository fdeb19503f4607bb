"""
Actor and stage state for the block engine.
"""

from kidscode_engine.stage.state import (
    ActorDeclaration,
    ActorId,
    ActorState,
    Background,
    Speech,
    SpeechKind,
    StageState,
)

__all__ = [
    "ActorDeclaration",
    "ActorId",
    "ActorState",
    "Background",
    "Speech",
    "SpeechKind",
    "StageState",
]
