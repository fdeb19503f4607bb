"""
WebSocket message handler for a stage session.
"""

import asyncio
import json
import logging
from typing import Any

from fastapi import WebSocketDisconnect
from pydantic import ValidationError

from kidscode_engine.host.schemas import RunRequest
from kidscode_engine.host.sessions import ConnectionInfo, SessionManager
from kidscode_engine.program.loader import ProgramFormatError

logger = logging.getLogger(__name__)


class WebSocketHandler:
    """
    Handles WebSocket messages for a connected host client.

    Messages in:
    - {"type": "run", "program": [...], "actors": [...], "background": {...}}
    - {"type": "stop"}
    - {"type": "snapshot"}
    """

    def __init__(self, manager: SessionManager, info: ConnectionInfo) -> None:
        self.manager = manager
        self.info = info

    async def handle_connection(self) -> None:
        """
        Main message loop for a WebSocket connection.

        Expected (non-fatal) errors:
        - WebSocketDisconnect: client disconnected
        - asyncio.TimeoutError: send timeout
        - ConnectionResetError, BrokenPipeError: connection lost
        - json.JSONDecodeError: invalid JSON -> close with 1007

        All other errors propagate (fail-fast).
        """
        try:
            await self._send_snapshot("subscribed")
            while True:
                try:
                    raw = await self.info.websocket.receive_text()
                    message = json.loads(raw)
                except json.JSONDecodeError:
                    # Invalid JSON - close immediately with protocol error code
                    logger.warning(f"Invalid JSON on session {self.info.session_id}, closing")
                    await self.info.websocket.close(code=1007)  # Invalid frame payload
                    return
                await self._handle_message(message)
        except WebSocketDisconnect:
            logger.info(f"Client left session {self.info.session_id}")
        except asyncio.TimeoutError:
            logger.warning(f"Timeout on session {self.info.session_id}")
        except (ConnectionResetError, BrokenPipeError, OSError) as e:
            logger.info(f"Connection lost on session {self.info.session_id}: {e}")
        finally:
            await self.manager.disconnect(self.info)

    async def _handle_message(self, message: Any) -> None:
        """Route incoming messages to appropriate handlers."""
        if not isinstance(message, dict):
            await self._send_error("Message must be a JSON object")
            return

        msg_type = message.get("type")
        if msg_type is None:
            await self._send_error("Missing message type")
            return

        handlers = {
            "run": self._handle_run,
            "stop": self._handle_stop,
            "snapshot": self._handle_snapshot,
        }

        handler = handlers.get(msg_type)
        if handler is None:
            await self._send_error(f"Unknown message type: {msg_type}")
            return

        await handler(message)

    async def _handle_run(self, message: dict[str, Any]) -> None:
        """Handle a run request."""
        try:
            request = RunRequest.model_validate(message)
            program, actors, background = request.load()
        except (ValidationError, ProgramFormatError) as e:
            await self._send_error(f"Invalid run request: {e}")
            return

        started = await self.manager.start_run(
            self.info.session_id, program, actors, background
        )
        if not started:
            await self._send_error("A run is already in progress")
            return

        await self.info.websocket.send_json({"type": "run_started"})

    async def _handle_stop(self, message: dict[str, Any]) -> None:
        stopped = self.manager.stop_run(self.info.session_id)
        await self.info.websocket.send_json({"type": "stop_requested", "stopped": stopped})

    async def _handle_snapshot(self, message: dict[str, Any]) -> None:
        await self._send_snapshot("state")

    async def _send_snapshot(self, msg_type: str) -> None:
        bridge = await self.manager.get_or_create(self.info.session_id)
        await self.info.websocket.send_json({
            "type": msg_type,
            "session_id": self.info.session_id,
            **bridge.snapshot(),
        })

    async def _send_error(self, message: str) -> None:
        """Send error message to client."""
        try:
            await self.info.websocket.send_json({
                "type": "error",
                "message": message,
            })
        except Exception:
            pass  # Connection might be closed
