"""
Request/response schemas shared by the REST routes and the WebSocket handler.
"""

from typing import Any, Union

from pydantic import AliasChoices, BaseModel, Field

from kidscode_engine.program.loader import load_program
from kidscode_engine.program.model import Program
from kidscode_engine.stage.state import ActorDeclaration, Background


class ActorPayload(BaseModel):
    """An actor declaration from the host."""

    id: Union[str, int]
    name: str = ""
    image_ref: str = Field(
        default="",
        validation_alias=AliasChoices("image_ref", "imageRef", "imageUrl"),
    )

    def to_declaration(self) -> ActorDeclaration:
        return ActorDeclaration(id=self.id, name=self.name, image_ref=self.image_ref)


class BackgroundPayload(BaseModel):
    image_ref: str = Field(
        ...,
        validation_alias=AliasChoices("image_ref", "imageRef", "imageUrl"),
    )
    name: str = ""

    def to_background(self) -> Background:
        return Background(image_ref=self.image_ref, name=self.name)


class RunRequest(BaseModel):
    """Request schema for starting a run."""

    program: Union[list[dict[str, Any]], dict[str, Any]] = Field(default_factory=list)
    actors: list[ActorPayload] = Field(default_factory=list)
    background: BackgroundPayload | None = None

    def load(self) -> tuple[Program, list[ActorDeclaration], Background | None]:
        """
        Convert to engine types.

        Raises:
            ProgramFormatError: if the program payload is malformed
        """
        program = load_program(self.program)
        actors = [actor.to_declaration() for actor in self.actors]
        background = self.background.to_background() if self.background else None
        return program, actors, background


class RunReportResponse(BaseModel):
    status: str
    operations_executed: int
    operations_by_kind: dict[str, int]
    unknown_kinds: list[str]
    elapsed_ms: float


class StageResponse(BaseModel):
    """Response schema for a stage snapshot."""

    actors: list[dict[str, Any]]
    background: dict[str, Any] | None
    running: bool


class RunAcceptedResponse(BaseModel):
    session_id: str
    running: bool


class StopResponse(BaseModel):
    session_id: str
    stopped: bool


class SimulateResponse(BaseModel):
    """Response schema for a headless run."""

    report: RunReportResponse
    stage: StageResponse


class TemplateResponse(BaseModel):
    kind: str
    category: str
    label: str
    color: str
    parameters: dict[str, Any]
    is_container: bool


class CategoryResponse(BaseModel):
    id: str
    name: str
    color: str
    templates: list[TemplateResponse]


class PaletteResponse(BaseModel):
    categories: list[CategoryResponse]


class BlockResponse(BaseModel):
    """A freshly created block, in the studio's wire shape."""

    id: Union[str, int]
    type: str
    category: str | None
    label: str | None
    properties: dict[str, Any]
    children: list[Union[str, int]]
    next: Union[str, int, None]
