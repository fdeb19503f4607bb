"""
Session manager for the web host.
Owns one HostBridge per session and fans stage frames out to the WebSocket
connections subscribed to that session.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any
from uuid import UUID, uuid4

from fastapi import WebSocket

from kidscode_engine.config import Settings
from kidscode_engine.engine.context import RunReport
from kidscode_engine.engine.registry import HandlerRegistry
from kidscode_engine.host.bridge import HostBridge
from kidscode_engine.program.model import Program
from kidscode_engine.stage.state import ActorDeclaration, Background

logger = logging.getLogger(__name__)

# Global session manager instance
_manager: "SessionManager | None" = None


def get_session_manager() -> "SessionManager | None":
    """Get the global session manager instance."""
    return _manager


def set_session_manager(manager: "SessionManager | None") -> None:
    """Set the global session manager instance."""
    global _manager
    _manager = manager


class SessionLimitError(RuntimeError):
    """Raised when a new session would exceed max_sessions."""


@dataclass
class ConnectionInfo:
    """
    Information about a connected host client.
    Outgoing broadcasts are queued and sent in order by one sender task.
    """

    session_id: str
    websocket: WebSocket
    connection_id: UUID = field(default_factory=uuid4)
    queue: asyncio.Queue = field(default_factory=asyncio.Queue)
    sender: asyncio.Task | None = None


class SessionManager:
    """
    Manages stage sessions and their WebSocket subscribers.

    A session lives while it has subscribers or a run in progress. Idle
    sessions are dropped when their last subscriber leaves, and idle
    sessions nobody subscribes to are evicted when the limit is reached.
    """

    def __init__(self, settings: Settings, registry: HandlerRegistry) -> None:
        self._settings = settings
        self._registry = registry
        # Map of session_id -> HostBridge
        self._sessions: dict[str, HostBridge] = {}
        # Map of session_id -> connections subscribed
        self._subscribers: dict[str, dict[UUID, ConnectionInfo]] = {}
        self._lock = asyncio.Lock()

    @property
    def session_count(self) -> int:
        return len(self._sessions)

    @property
    def registry(self) -> HandlerRegistry:
        return self._registry

    def get(self, session_id: str) -> HostBridge | None:
        return self._sessions.get(session_id)

    async def get_or_create(self, session_id: str) -> HostBridge:
        """
        Return the bridge for session_id, creating it on first use.

        Raises:
            SessionLimitError: if the limit is reached and no idle session
                can be evicted
        """
        async with self._lock:
            return await self._get_or_create_locked(session_id)

    async def _get_or_create_locked(self, session_id: str) -> HostBridge:
        bridge = self._sessions.get(session_id)
        if bridge is not None:
            return bridge

        if len(self._sessions) >= self._settings.max_sessions:
            await self._evict_idle_locked()
        if len(self._sessions) >= self._settings.max_sessions:
            raise SessionLimitError(
                f"Session limit reached ({self._settings.max_sessions})"
            )

        bridge = HostBridge(
            registry=self._registry,
            frame_interval_ms=self._settings.frame_interval_ms,
            schedule_mode=self._settings.schedule_mode,
        )
        bridge.add_listener(
            lambda snapshot: self.broadcast(
                session_id, {"type": "state", **snapshot}
            )
        )
        bridge.add_diagnostic_listener(
            lambda code: self.broadcast(
                session_id, {"type": "diagnostic", "code": code}
            )
        )
        self._sessions[session_id] = bridge
        logger.info(f"Session {session_id} created")
        return bridge

    async def _evict_idle_locked(self) -> None:
        """Drop every idle session without subscribers."""
        for session_id, bridge in list(self._sessions.items()):
            if session_id in self._subscribers or not bridge.is_idle:
                continue
            del self._sessions[session_id]
            await bridge.close()
            logger.info(f"Session {session_id} evicted")

    async def start_run(
        self,
        session_id: str,
        program: Program,
        actors: list[ActorDeclaration],
        background: Background | None = None,
    ) -> bool:
        """
        Start a background run for a session.
        Returns False if the session is already running.
        """
        bridge = await self.get_or_create(session_id)

        def on_finished(report: RunReport) -> None:
            self.broadcast(
                session_id, {"type": "run_finished", "report": report.to_dict()}
            )

        task = bridge.start(program, actors, background, on_finished=on_finished)
        if task is None:
            return False

        logger.info(f"Session {session_id}: run started")
        return True

    def stop_run(self, session_id: str) -> bool:
        bridge = self._sessions.get(session_id)
        if bridge is None:
            return False
        return bridge.stop()

    async def connect(self, info: ConnectionInfo) -> None:
        """
        Register a WebSocket connection for a session.

        Raises:
            SessionLimitError: if the session cannot be created
        """
        async with self._lock:
            await self._get_or_create_locked(info.session_id)
            self._subscribers.setdefault(info.session_id, {})[info.connection_id] = info
            info.sender = asyncio.create_task(self._sender_loop(info))
        logger.info(
            f"Client connected to session {info.session_id} "
            f"[conn_id={info.connection_id}]"
        )

    async def disconnect(self, info: ConnectionInfo) -> None:
        """
        Unregister a WebSocket connection.
        The session is dropped once its last subscriber leaves and it is idle.
        """
        closed: HostBridge | None = None
        async with self._lock:
            subscribers = self._subscribers.get(info.session_id)
            if subscribers is None or subscribers.pop(info.connection_id, None) is None:
                return
            if not subscribers:
                del self._subscribers[info.session_id]
                bridge = self._sessions.get(info.session_id)
                if bridge is not None and bridge.is_idle:
                    closed = self._sessions.pop(info.session_id)

        await self._stop_sender(info)
        if closed is not None:
            await closed.close()
            logger.info(f"Session {info.session_id} closed")

        logger.info(
            f"Client disconnected from session {info.session_id} "
            f"[conn_id={info.connection_id}]"
        )

    def get_subscribers(self, session_id: str) -> list[ConnectionInfo]:
        return list(self._subscribers.get(session_id, {}).values())

    def broadcast(self, session_id: str, message: dict[str, Any]) -> None:
        """
        Queue a message for every subscriber of a session.
        Non-blocking: slow clients won't block the broadcast, and stage
        callbacks can call it synchronously.
        """
        for info in self.get_subscribers(session_id):
            info.queue.put_nowait(message)

    async def _sender_loop(self, info: ConnectionInfo) -> None:
        """Send queued messages to one connection, in order."""
        while True:
            message = await info.queue.get()
            try:
                await self._send_to_connection(info, message)
            finally:
                info.queue.task_done()

    async def _stop_sender(self, info: ConnectionInfo) -> None:
        if info.sender is None:
            return
        info.sender.cancel()
        await asyncio.gather(info.sender, return_exceptions=True)
        info.sender = None

    async def _send_to_connection(
        self,
        info: ConnectionInfo,
        message: dict[str, Any],
    ) -> None:
        """Send a message to a specific connection."""
        try:
            await asyncio.wait_for(
                info.websocket.send_json(message),
                timeout=self._settings.send_timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.warning(f"Timeout sending to connection {info.connection_id}")
        except Exception as e:
            logger.warning(f"Error sending to connection {info.connection_id}: {e}")
            # Don't disconnect here - let the main handler handle it

    async def close_all(self) -> None:
        """Stop every run and drop all sessions."""
        async with self._lock:
            bridges = list(self._sessions.values())
            connections = [
                info
                for subscribers in self._subscribers.values()
                for info in subscribers.values()
            ]
            self._sessions.clear()
            self._subscribers.clear()
        for info in connections:
            await self._stop_sender(info)
        for bridge in bridges:
            await bridge.close()
        logger.info(f"Closed {len(bridges)} session(s)")
