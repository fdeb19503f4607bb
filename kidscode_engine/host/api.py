"""
REST API routes for the block engine host.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status

from kidscode_engine.config import Settings, get_settings
from kidscode_engine.host.bridge import HostBridge
from kidscode_engine.host.schemas import (
    BlockResponse,
    CategoryResponse,
    PaletteResponse,
    RunAcceptedResponse,
    RunReportResponse,
    RunRequest,
    SimulateResponse,
    StageResponse,
    StopResponse,
    TemplateResponse,
)
from kidscode_engine.host.sessions import SessionLimitError, SessionManager, get_session_manager
from kidscode_engine.program.loader import ProgramFormatError
from kidscode_engine.program.palette import CATEGORIES, create_block, templates_by_category
from kidscode_engine.tween.clock import ManualClock

router = APIRouter()


def require_session_manager() -> SessionManager:
    """Dependency: the running session manager, or 503."""
    manager = get_session_manager()
    if manager is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Session manager not available",
        )
    return manager


def _load(request: RunRequest):
    try:
        return request.load()
    except ProgramFormatError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"Invalid program: {e}",
        )


# Palette
@router.get("/palette", response_model=PaletteResponse)
async def get_palette() -> PaletteResponse:
    """
    List block templates grouped by category.
    """
    grouped = templates_by_category()
    return PaletteResponse(
        categories=[
            CategoryResponse(
                id=category.id,
                name=category.name,
                color=category.color,
                templates=[
                    TemplateResponse(**template.to_dict())
                    for template in grouped[category.id]
                ],
            )
            for category in CATEGORIES
        ]
    )


@router.post("/palette/{kind}", response_model=BlockResponse, status_code=status.HTTP_201_CREATED)
async def new_block(kind: str) -> BlockResponse:
    """
    Create a fresh block instance from a palette template.
    """
    try:
        block = create_block(kind)
    except KeyError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Unknown block kind: {kind}",
        )
    return BlockResponse(**block.to_dict())


# Sessions
@router.post(
    "/sessions/{session_id}/run",
    response_model=RunAcceptedResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
async def run_session(
    session_id: str,
    request: RunRequest,
    manager: Annotated[SessionManager, Depends(require_session_manager)],
) -> RunAcceptedResponse:
    """
    Start a run for a session. Frames are pushed to the session's
    WebSocket subscribers.
    """
    program, actors, background = _load(request)

    try:
        started = await manager.start_run(session_id, program, actors, background)
    except SessionLimitError as e:
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=str(e),
        )

    if not started:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="A run is already in progress",
        )

    return RunAcceptedResponse(session_id=session_id, running=True)


@router.post("/sessions/{session_id}/stop", response_model=StopResponse)
async def stop_session(
    session_id: str,
    manager: Annotated[SessionManager, Depends(require_session_manager)],
) -> StopResponse:
    """
    Ask the session's current run to stop.
    """
    if manager.get(session_id) is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Session not found",
        )
    return StopResponse(session_id=session_id, stopped=manager.stop_run(session_id))


@router.get("/sessions/{session_id}/stage", response_model=StageResponse)
async def get_stage(
    session_id: str,
    manager: Annotated[SessionManager, Depends(require_session_manager)],
) -> StageResponse:
    """
    Get the current stage snapshot of a session.
    """
    bridge = manager.get(session_id)
    if bridge is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Session not found",
        )
    return StageResponse(**bridge.snapshot())


# Simulation
@router.post("/simulate", response_model=SimulateResponse)
async def simulate(
    request: RunRequest,
    manager: Annotated[SessionManager, Depends(require_session_manager)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> SimulateResponse:
    """
    Run a program on virtual time and return the final stage immediately.
    """
    program, actors, background = _load(request)

    bridge = HostBridge(
        registry=manager.registry,
        clock=ManualClock(),
        frame_interval_ms=settings.frame_interval_ms,
        schedule_mode=settings.schedule_mode,
    )
    report = await bridge.run(program, actors, background)

    return SimulateResponse(
        report=RunReportResponse(**report.to_dict()),
        stage=StageResponse(**bridge.snapshot()),
    )
