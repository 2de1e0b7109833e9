"""
Wire message definitions for the buzzer realtime channel.

Server frames are JSON objects tagged by a "type" field. They are parsed into
ServerEvent records and applied strictly in receipt order. Client frames are
built with the factory functions at the bottom of this module.
"""

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from errors import MALFORMED_MESSAGE, UNKNOWN_MESSAGE, ProtocolError


class EventType(str, Enum):
    """All server-to-client message tags."""

    # Round events
    ROUND_STARTED = "round_started"
    ROUND_CONTINUED = "round_continued"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    TIMED_OUT = "timed_out"

    # Membership events
    PARTICIPANTS = "participants"
    KICKED = "kicked"

    # Feedback
    ACTION_DENIED = "action_denied"


class ClientMessageType(str, Enum):
    """All client-to-server message tags."""
    BUZZ = "buzz"
    START_ROUND = "start_round"
    CONTINUE_ROUND = "continue_round"
    KICK = "kick"
    SET_ADMIN = "set_admin"


# Fields each tag must carry, with their expected types
_REQUIRED_FIELDS: dict[EventType, dict[str, type]] = {
    EventType.ACCEPTED: {"name": str},
    EventType.TIMED_OUT: {"name": str},
    EventType.PARTICIPANTS: {"participants": list},
    EventType.ACTION_DENIED: {"reason": str},
}


@dataclass
class ServerEvent:
    """
    A single message received from the server.

    Attributes:
        event_type: The message tag.
        data: The full decoded payload (including "type").
    """

    event_type: EventType
    data: dict = field(default_factory=dict)

    @property
    def name(self) -> Optional[str]:
        return self.data.get("name")

    @property
    def reason(self) -> Optional[str]:
        return self.data.get("reason")

    @property
    def participants(self) -> list[dict]:
        return self.data.get("participants", [])

    @property
    def deadline_in_ms(self) -> Optional[int]:
        return self.data.get("deadline_in_ms")

    @classmethod
    def from_dict(cls, d: dict) -> "ServerEvent":
        """
        Validate and wrap a decoded server frame.

        Raises:
            ProtocolError: If the tag is unknown or required fields are missing.
        """
        if not isinstance(d, dict):
            raise ProtocolError(MALFORMED_MESSAGE, "frame is not a JSON object")
        try:
            event_type = EventType(d.get("type"))
        except ValueError:
            raise ProtocolError(UNKNOWN_MESSAGE, f"unknown message type: {d.get('type')!r}") from None

        for key, expected in _REQUIRED_FIELDS.get(event_type, {}).items():
            if not isinstance(d.get(key), expected):
                raise ProtocolError(
                    MALFORMED_MESSAGE,
                    f"{event_type.value} frame missing '{key}'",
                )

        return cls(event_type=event_type, data=d)

    @classmethod
    def from_json(cls, raw: str | bytes) -> "ServerEvent":
        """
        Parse a raw text frame.

        Raises:
            ProtocolError: On invalid JSON or an unrecognized frame.
        """
        try:
            d = json.loads(raw)
        except (TypeError, ValueError) as e:
            raise ProtocolError(MALFORMED_MESSAGE, f"invalid JSON: {e}") from None
        return cls.from_dict(d)


# =============================================================================
# Client Message Factory Functions
# =============================================================================


def _frame(msg_type: ClientMessageType, **data) -> str:
    return json.dumps({"type": msg_type.value, **data})


def buzz() -> str:
    return _frame(ClientMessageType.BUZZ)


def start_round() -> str:
    return _frame(ClientMessageType.START_ROUND)


def continue_round() -> str:
    return _frame(ClientMessageType.CONTINUE_ROUND)


def kick(name: str) -> str:
    """Ask the server to remove a participant (admin only)."""
    return _frame(ClientMessageType.KICK, name=name)


def set_admin(name: str) -> str:
    """Ask the server to transfer admin status (admin only)."""
    return _frame(ClientMessageType.SET_ADMIN, name=name)
