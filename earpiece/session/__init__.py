"""Live session: backend interface and the connection state machine."""
from .backend import LiveSession, SessionCallbacks, SessionConnector, SessionParams
from .state_machine import SessionState, SessionStateMachine

__all__ = [
    "LiveSession",
    "SessionCallbacks",
    "SessionConnector",
    "SessionParams",
    "SessionState",
    "SessionStateMachine",
]
