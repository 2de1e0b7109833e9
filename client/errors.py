"""
Error taxonomy for the buzzer client.

Only SessionInvalidError (and the server's "kicked" event) end a session;
everything else degrades gracefully and leaves the session alive for retry.
"""

import math
from typing import Optional

# Server-side reason strings (REST body text / action_denied reasons)
ROOM_NOT_FOUND = "room_not_found"
USER_NOT_IN_ROOM = "user_not_in_room"
SESSION_EXPIRED = "session_expired"
INVALID_TOKEN = "invalid_token"
KICKED = "kicked"
NAME_TAKEN = "name_taken"
FULL_ROOM = "full_room"
INVALID_EMPTY_NAME = "invalid_empty_name"
AUTH_REQUIRED = "auth_required"
ROOM_MISMATCH = "room_mismatch"

# Local reason codes
MISSING_TOKEN_OR_ROOM = "missing_token_or_room"
AUTH_PENDING = "auth_pending"
RATE_LIMITED = "rate_limited"
MALFORMED_MESSAGE = "malformed_message"
UNKNOWN_MESSAGE = "unknown_message"
TRANSPORT_FAILED = "transport_failed"

SESSION_INVALID_REASONS = frozenset({ROOM_NOT_FOUND, USER_NOT_IN_ROOM, KICKED})


class BuzzerError(Exception):
    """Base exception for client errors."""

    def __init__(self, code: str, message: str = ""):
        self.code = code
        self.message = message or code
        super().__init__(f"[{code}] {self.message}")


class ConfigurationError(BuzzerError):
    """The client lacks what it needs to act (e.g. no token or room)."""


class TransportError(BuzzerError):
    """Socket or HTTP transport failure. Recoverable."""


class AuthExpiredError(BuzzerError):
    """Token refresh failed; may recover on retry, else re-authenticate."""


class SessionInvalidError(BuzzerError):
    """The room is gone or this user is no longer in it. Fatal to the session."""


class ProtocolError(BuzzerError):
    """A server frame could not be parsed or has an unknown tag."""


class RateLimitedError(BuzzerError):
    """Refused locally while a server-imposed cooldown is active."""

    def __init__(self, retry_after: float):
        self.retry_after = retry_after
        super().__init__(RATE_LIMITED, f"Too many requests. Wait for {math.ceil(retry_after)}s")


class ApiError(BuzzerError):
    """
    Non-2xx response from the REST gateway.

    Attributes:
        status: HTTP status code.
        reason: Response body text (the server's reason string).
        retry_after: Seconds from the Retry-After header on 429, if present.
    """

    def __init__(self, status: int, reason: str, retry_after: Optional[float] = None):
        self.status = status
        self.reason = reason or f"request_failed_{status}"
        self.retry_after = retry_after
        super().__init__(self.reason, self.reason)

    @property
    def is_rate_limited(self) -> bool:
        return self.status == 429

    @property
    def is_session_invalid(self) -> bool:
        return any(r in self.reason for r in SESSION_INVALID_REASONS)

    @property
    def is_room_gone(self) -> bool:
        return ROOM_NOT_FOUND in self.reason
