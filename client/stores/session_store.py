"""
Per-room session persistence.

A SessionStore keeps {token, name, role} for each room the client has joined,
plus a single "active room" pointer used to rehydrate the client on restart.
Only key/value semantics are relied on; the storage format is private to
each implementation.
"""

import asyncio
import logging
import sqlite3
from pathlib import Path
from typing import Optional

from models.session import Role, StoredAuth

logger = logging.getLogger(__name__)


class SessionStore:
    """Interface for per-room auth persistence."""

    async def get(self, room_id: str) -> StoredAuth:
        """Get the stored record for a room (empty record if none)."""
        raise NotImplementedError

    async def persist(
        self,
        room_id: str,
        token: Optional[str] = None,
        name: Optional[str] = None,
        role: Optional[Role] = None,
    ) -> None:
        """
        Store the given fields for a room.

        Fields passed as None are left untouched, so a refresh can update the
        token without rewriting the name or role.
        """
        raise NotImplementedError

    async def get_active_room_id(self) -> Optional[str]:
        raise NotImplementedError

    async def set_active_room_id(self, room_id: str) -> None:
        raise NotImplementedError

    async def clear_active_room_id(self) -> None:
        raise NotImplementedError

    async def get_token(self, room_id: str) -> Optional[str]:
        """Get just the stored token for a room."""
        if not room_id:
            return None
        return (await self.get(room_id)).token

    async def close(self) -> None:
        """Release any underlying resources."""


class MemorySessionStore(SessionStore):
    """In-process store. Used by tests and short-lived CLI sessions."""

    def __init__(self) -> None:
        self.records: dict[str, StoredAuth] = {}
        self.active_room_id: Optional[str] = None

    async def get(self, room_id: str) -> StoredAuth:
        record = self.records.get(room_id)
        if record is None:
            return StoredAuth()
        return StoredAuth(token=record.token, name=record.name, role=record.role)

    async def persist(
        self,
        room_id: str,
        token: Optional[str] = None,
        name: Optional[str] = None,
        role: Optional[Role] = None,
    ) -> None:
        if not room_id:
            return
        record = self.records.setdefault(room_id, StoredAuth())
        if token:
            record.token = token
        if name:
            record.name = name
        if role:
            record.role = role

    async def get_active_room_id(self) -> Optional[str]:
        return self.active_room_id

    async def set_active_room_id(self, room_id: str) -> None:
        self.active_room_id = room_id or None

    async def clear_active_room_id(self) -> None:
        self.active_room_id = None


class SqliteSessionStore(SessionStore):
    """
    SQLite-backed store that survives client restarts.

    Each call opens its own connection in a worker thread, so the event loop
    never waits on disk I/O.
    """

    ACTIVE_ROOM_KEY = "active_room_id"

    def __init__(self, db_path: str = "buzzer_sessions.db"):
        self.db_path = Path(db_path)
        self._init_db()

    def _init_db(self):
        """Initialize the session database schema."""
        with sqlite3.connect(self.db_path) as conn:
            conn.executescript("""
                -- One row per joined room
                CREATE TABLE IF NOT EXISTS room_auth (
                    room_id TEXT PRIMARY KEY,
                    token TEXT,
                    name TEXT,
                    role TEXT,
                    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                );

                -- Client-wide pointers
                CREATE TABLE IF NOT EXISTS client_state (
                    key TEXT PRIMARY KEY,
                    value TEXT
                );
            """)

    async def get(self, room_id: str) -> StoredAuth:
        if not room_id:
            return StoredAuth()
        return await asyncio.to_thread(self._get, room_id)

    def _get(self, room_id: str) -> StoredAuth:
        with sqlite3.connect(self.db_path) as conn:
            conn.row_factory = sqlite3.Row
            cursor = conn.execute(
                "SELECT token, name, role FROM room_auth WHERE room_id = ?",
                (room_id,)
            )
            row = cursor.fetchone()
        if not row:
            return StoredAuth()
        return StoredAuth(
            token=row["token"],
            name=row["name"],
            role=Role.parse(row["role"]),
        )

    async def persist(
        self,
        room_id: str,
        token: Optional[str] = None,
        name: Optional[str] = None,
        role: Optional[Role] = None,
    ) -> None:
        if not room_id:
            return
        await asyncio.to_thread(self._persist, room_id, token, name, role)

    def _persist(self, room_id, token, name, role) -> None:
        with sqlite3.connect(self.db_path) as conn:
            conn.execute(
                """
                INSERT INTO room_auth (room_id, token, name, role)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(room_id) DO UPDATE SET
                    token = COALESCE(excluded.token, room_auth.token),
                    name = COALESCE(excluded.name, room_auth.name),
                    role = COALESCE(excluded.role, room_auth.role),
                    updated_at = CURRENT_TIMESTAMP
                """,
                (room_id, token or None, name or None, role.value if role else None)
            )

    async def get_active_room_id(self) -> Optional[str]:
        return await asyncio.to_thread(self._get_active_room_id)

    def _get_active_room_id(self) -> Optional[str]:
        with sqlite3.connect(self.db_path) as conn:
            cursor = conn.execute(
                "SELECT value FROM client_state WHERE key = ?",
                (self.ACTIVE_ROOM_KEY,)
            )
            row = cursor.fetchone()
        return row[0] if row else None

    async def set_active_room_id(self, room_id: str) -> None:
        await asyncio.to_thread(self._set_active_room_id, room_id)

    def _set_active_room_id(self, room_id: str) -> None:
        with sqlite3.connect(self.db_path) as conn:
            conn.execute(
                "INSERT OR REPLACE INTO client_state (key, value) VALUES (?, ?)",
                (self.ACTIVE_ROOM_KEY, room_id)
            )

    async def clear_active_room_id(self) -> None:
        await asyncio.to_thread(self._clear_active_room_id)
        logger.debug("Cleared active room pointer")

    def _clear_active_room_id(self) -> None:
        with sqlite3.connect(self.db_path) as conn:
            conn.execute(
                "DELETE FROM client_state WHERE key = ?",
                (self.ACTIVE_ROOM_KEY,)
            )
