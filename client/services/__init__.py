"""Services package for buzzer client auth, token and notification handling."""

from .auth_gateway import AuthGateway, CreateRoomResponse, JoinRoomResponse
from .ratelimit import RetryCooldown, OutboundMessageLimiter
from .token_lifecycle import (
    TokenLifecycle,
    RefreshScheduler,
    decode_token_expiry,
    should_refresh,
)
from .notifications import (
    NotificationSink,
    LoggingNotificationSink,
    NoticeBoard,
    Notice,
    PendingTimer,
    SoundSettings,
    SoundCue,
    Tone,
    FlashTone,
)

__all__ = [
    "AuthGateway",
    "CreateRoomResponse",
    "JoinRoomResponse",
    "RetryCooldown",
    "OutboundMessageLimiter",
    "TokenLifecycle",
    "RefreshScheduler",
    "decode_token_expiry",
    "should_refresh",
    "NotificationSink",
    "LoggingNotificationSink",
    "NoticeBoard",
    "Notice",
    "PendingTimer",
    "SoundSettings",
    "SoundCue",
    "Tone",
    "FlashTone",
]
