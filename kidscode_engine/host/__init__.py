"""
Host bridge and web host surface for the block engine.
"""

from kidscode_engine.host.bridge import HostBridge
from kidscode_engine.host.sessions import SessionManager, get_session_manager, set_session_manager

__all__ = ["HostBridge", "SessionManager", "get_session_manager", "set_session_manager"]
