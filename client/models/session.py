"""
Session and roster models for the buzzer client.

Defines the local session, the participant roster entries, and the small
finite-state enums (round phase, outcome, connection phase, view) that the
session object owns.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class Role(str, Enum):
    """Participant role within a room."""
    ADMIN = "admin"
    PLAYER = "player"

    @classmethod
    def parse(cls, value: Optional[str], default: Optional["Role"] = None) -> Optional["Role"]:
        """Parse a role string, returning default for unknown/missing values."""
        try:
            return cls(value)
        except ValueError:
            return default


class RoundPhase(str, Enum):
    """Round phase as derived from the server's event stream."""
    IDLE = "idle"
    OPEN = "open"
    LOCKED = "locked"
    REJECTED = "rejected"


class BuzzOutcome(str, Enum):
    """Local result of the current round."""
    NONE = "none"
    WON = "won"
    LOST = "lost"
    REJECTED = "rejected"


class ConnectionPhase(str, Enum):
    """Realtime connection lifecycle."""
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


class View(str, Enum):
    """Which side of the join boundary the client is on."""
    LANDING = "landing"
    ROOM = "room"


@dataclass
class Session:
    """
    The local client's membership in a room.

    Attributes:
        room_id: Server-issued room identifier.
        display_name: Name used at join time; identity within the roster.
        role: Current role, as last reflected by the server.
        token: Bearer token with an embedded expiry.
        answer_window_ms: Answer window reported at create/join time.
    """

    room_id: str
    display_name: str
    role: Role = Role.PLAYER
    token: Optional[str] = None
    answer_window_ms: Optional[int] = None

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

    def has_credentials(self) -> bool:
        """Check if the session can authenticate a connection."""
        return bool(self.token and self.room_id)


@dataclass
class Participant:
    """
    A roster entry as broadcast by the server.

    Attributes:
        name: Display name (unique within the room, enforced by the server).
        role: Participant role.
        locked_out: Whether barred from buzzing for the rest of the round.
    """

    name: str
    role: Role = Role.PLAYER
    locked_out: bool = False

    @classmethod
    def from_dict(cls, d: dict) -> "Participant":
        """Build a participant from a roster broadcast entry."""
        return cls(
            name=str(d["name"]),
            role=Role.parse(d.get("role"), Role.PLAYER),
            locked_out=bool(d.get("locked_out", False)),
        )

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "role": self.role.value,
            "locked_out": self.locked_out,
        }


@dataclass
class StoredAuth:
    """Per-room record kept by a SessionStore."""

    token: Optional[str] = None
    name: Optional[str] = None
    role: Optional[Role] = None

    def is_complete(self) -> bool:
        return bool(self.token and self.name and self.role)
