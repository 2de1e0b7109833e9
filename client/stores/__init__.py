"""Stores package for buzzer client session persistence."""

from .session_store import SessionStore, MemorySessionStore, SqliteSessionStore
from .redis_session_store import RedisSessionStore

__all__ = [
    "SessionStore",
    "MemorySessionStore",
    "SqliteSessionStore",
    "RedisSessionStore",
]
