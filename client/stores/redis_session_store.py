"""
Redis-backed session store.

Lets several client processes on one machine (or a kiosk fleet) share
their per-room auth records.

Key patterns:
- buzzer:auth:{room_id}   -> Hash (token, name, role)
- buzzer:active_room      -> String (room id of the active session)
"""

import logging
from datetime import timedelta
from typing import Optional

import redis.asyncio as redis

from models.session import Role, StoredAuth
from stores.session_store import SessionStore

logger = logging.getLogger(__name__)


class RedisSessionStore(SessionStore):
    """Redis-backed per-room auth records."""

    AUTH_KEY = "buzzer:auth:{room_id}"
    ACTIVE_ROOM_KEY = "buzzer:active_room"

    # Tokens are refreshed well before this; stale rooms age out
    AUTH_TTL = timedelta(days=7)

    def __init__(self, redis_client: redis.Redis):
        """
        Initialize the store with a Redis client.

        Args:
            redis_client: Async Redis client.
        """
        self.redis = redis_client

    @classmethod
    async def create(cls, redis_url: str) -> "RedisSessionStore":
        """
        Create a store with a new Redis connection.

        Args:
            redis_url: Redis connection URL.

        Returns:
            Configured RedisSessionStore instance.
        """
        client = redis.from_url(redis_url, decode_responses=False)
        await client.ping()
        logger.info("RedisSessionStore connected to Redis")
        return cls(client)

    async def close(self) -> None:
        """Close the Redis connection."""
        await self.redis.close()

    @staticmethod
    def _decode(value) -> Optional[str]:
        if value is None:
            return None
        return value.decode() if isinstance(value, bytes) else str(value)

    async def get(self, room_id: str) -> StoredAuth:
        if not room_id:
            return StoredAuth()
        data = await self.redis.hgetall(self.AUTH_KEY.format(room_id=room_id))
        if not data:
            return StoredAuth()
        fields = {self._decode(k): self._decode(v) for k, v in data.items()}
        return StoredAuth(
            token=fields.get("token") or None,
            name=fields.get("name") or None,
            role=Role.parse(fields.get("role")),
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
        mapping = {}
        if token:
            mapping["token"] = token
        if name:
            mapping["name"] = name
        if role:
            mapping["role"] = role.value
        if not mapping:
            return

        key = self.AUTH_KEY.format(room_id=room_id)
        pipe = self.redis.pipeline()
        pipe.hset(key, mapping=mapping)
        pipe.expire(key, int(self.AUTH_TTL.total_seconds()))
        await pipe.execute()

    async def get_active_room_id(self) -> Optional[str]:
        return self._decode(await self.redis.get(self.ACTIVE_ROOM_KEY))

    async def set_active_room_id(self, room_id: str) -> None:
        await self.redis.set(self.ACTIVE_ROOM_KEY, room_id)

    async def clear_active_room_id(self) -> None:
        await self.redis.delete(self.ACTIVE_ROOM_KEY)
        logger.debug("Cleared active room pointer")
