"""
Pytest fixtures for KidsCode engine tests.
"""

import os
from typing import Any, AsyncGenerator

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport

# Set test environment
os.environ["LOG_LEVEL"] = "DEBUG"
os.environ["FRAME_INTERVAL_MS"] = "16"

from kidscode_engine.config import Settings
from kidscode_engine.engine import BlockEngine, default_registry
from kidscode_engine.host.sessions import SessionManager, set_session_manager
from kidscode_engine.main import app
from kidscode_engine.program import Block, Program
from kidscode_engine.stage import ActorDeclaration, StageState
from kidscode_engine.tween import ManualClock


def chain(*steps: tuple[str, dict[str, Any]], prefix: str = "b") -> list[Block]:
    """
    Build a linked chain of blocks from (kind, parameters) pairs.
    Ids are <prefix>0, <prefix>1, ...
    """
    blocks = []
    for index, (kind, parameters) in enumerate(steps):
        next_id = f"{prefix}{index + 1}" if index + 1 < len(steps) else None
        blocks.append(
            Block(id=f"{prefix}{index}", operation_kind=kind, parameters=parameters, next=next_id)
        )
    return blocks


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def stage() -> StageState:
    return StageState()


@pytest.fixture
def engine(stage: StageState, clock: ManualClock) -> BlockEngine:
    return BlockEngine(stage=stage, clock=clock)


@pytest.fixture
def cat() -> ActorDeclaration:
    return ActorDeclaration(id="cat", name="Cat", image_ref="cat.png")


@pytest.fixture
def dog() -> ActorDeclaration:
    return ActorDeclaration(id="dog", name="Dog", image_ref="dog.png")


@pytest.fixture
def build_program():
    """Factory: build_program(*steps) -> Program of one start chain."""

    def _build(*steps: tuple[str, dict[str, Any]]) -> Program:
        return Program(chain(("start", {}), *steps))

    return _build


@pytest_asyncio.fixture
async def manager() -> AsyncGenerator[SessionManager, None]:
    """Session manager installed globally, as the app lifespan does."""
    manager = SessionManager(Settings(), default_registry())
    set_session_manager(manager)
    yield manager
    await manager.close_all()
    set_session_manager(None)


@pytest_asyncio.fixture
async def client(manager: SessionManager) -> AsyncGenerator[AsyncClient, None]:
    """Create an async test client."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac
