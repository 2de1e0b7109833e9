"""Models package for the buzzer client."""

from .events import EventType, ClientMessageType, ServerEvent
from .session import (
    Role,
    RoundPhase,
    BuzzOutcome,
    ConnectionPhase,
    View,
    Session,
    Participant,
    StoredAuth,
)

__all__ = [
    "EventType",
    "ClientMessageType",
    "ServerEvent",
    "Role",
    "RoundPhase",
    "BuzzOutcome",
    "ConnectionPhase",
    "View",
    "Session",
    "Participant",
    "StoredAuth",
]
