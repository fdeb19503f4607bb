"""
Main FastAPI application for the KidsCode block engine host.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, WebSocket, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from kidscode_engine import __version__
from kidscode_engine.config import get_settings
from kidscode_engine.engine.handlers import default_registry
from kidscode_engine.engine.registry import load_handler_modules
from kidscode_engine.host.api import router as api_router
from kidscode_engine.host.handler import WebSocketHandler
from kidscode_engine.host.sessions import (
    ConnectionInfo,
    SessionLimitError,
    SessionManager,
    get_session_manager,
    set_session_manager,
)
from kidscode_engine.program.loader import ProgramFormatError

# Configure logging
logging.basicConfig(
    level=get_settings().log_level.upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.
    Builds the handler registry and the session manager, and stops every
    run on shutdown.
    """
    settings = get_settings()

    # Build handler registry
    registry = default_registry()
    if settings.handler_modules:
        logger.info(f"Loading handler modules: {settings.handler_modules}")
        load_handler_modules(settings.handler_modules, registry)

    # Initialize session manager
    logger.info(
        f"Initializing session manager (frame interval: {settings.frame_interval_ms}ms, "
        f"schedule: {settings.schedule_mode})..."
    )
    manager = SessionManager(settings, registry)
    set_session_manager(manager)

    logger.info("KidsCode engine started successfully!")

    yield

    # Shutdown
    logger.info("Shutting down...")
    await manager.close_all()
    set_session_manager(None)
    logger.info("KidsCode engine stopped.")


# Create FastAPI application
app = FastAPI(
    title="KidsCode Engine",
    description="Execution engine for children's block programs",
    version=__version__,
    lifespan=lifespan,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API routes
app.include_router(api_router, prefix="/api")


@app.exception_handler(ProgramFormatError)
async def program_format_error_handler(request: Request, exc: ProgramFormatError):
    """Handle malformed programs that escape the route handlers."""
    logger.warning(f"Invalid program: {exc}")
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": f"Invalid program: {exc}"},
    )


# WebSocket endpoint
@app.websocket("/ws/{session_id}")
async def websocket_endpoint(websocket: WebSocket, session_id: str):
    """
    WebSocket endpoint for a stage session.
    Streams a state message for every frame of the session's runs.
    """
    manager = get_session_manager()
    if manager is None:
        await websocket.close(code=status.WS_1011_INTERNAL_ERROR)
        return

    info = ConnectionInfo(session_id=session_id, websocket=websocket)

    await websocket.accept()

    # connect() starts the sender task, so the socket must be accepted first
    try:
        await manager.connect(info)
    except SessionLimitError as e:
        logger.warning(f"Refusing connection to {session_id}: {e}")
        await websocket.close(code=status.WS_1013_TRY_AGAIN_LATER)
        return

    # Handler owns the disconnect path
    handler = WebSocketHandler(manager=manager, info=info)
    await handler.handle_connection()


# Health check endpoint
@app.get("/health")
async def health_check():
    """Health check endpoint."""
    manager = get_session_manager()

    return {
        "status": "healthy",
        "session_count": manager.session_count if manager else 0,
    }


def run() -> None:
    """Console entry point: serve the app with uvicorn."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "kidscode_engine.main:app",
        host=settings.host,
        port=settings.port,
    )


if __name__ == "__main__":
    run()
