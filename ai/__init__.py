"""Live model session, transport and tool dispatch."""

from ai.live_session import LiveSession, SessionManager
from ai.observers import LoggingObserver, SafeObserver, SessionObserver

__all__ = [
    "LiveSession",
    "LoggingObserver",
    "SafeObserver",
    "SessionManager",
    "SessionObserver",
]
