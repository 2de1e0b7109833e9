"""
Bearer token lifecycle: expiry decoding, refresh decisions, and the
background refresh schedule.

Tokens are three dot-separated segments whose middle segment is a
base64url-encoded JSON payload carrying an "exp" claim in epoch seconds.
An expiry that cannot be decoded is treated as due for refresh.
A failed refresh yields None; callers never fall back to the stale token.
"""

import asyncio
import base64
import binascii
import json
import logging
import time
from typing import Awaitable, Callable, Optional

from errors import ApiError, AuthExpiredError, BuzzerError, SessionInvalidError
from stores.session_store import SessionStore

logger = logging.getLogger(__name__)


def decode_token_expiry(token: Optional[str]) -> Optional[int]:
    """
    Read the "exp" claim from a token's payload segment.

    Args:
        token: Bearer token.

    Returns:
        Expiry in epoch seconds, or None if it cannot be determined.
    """
    if not token:
        return None
    parts = token.split(".")
    if len(parts) != 3 or not parts[1]:
        return None

    payload = parts[1].replace("-", "+").replace("_", "/")
    payload += "=" * (-len(payload) % 4)
    try:
        data = json.loads(base64.b64decode(payload, validate=True))
    except (binascii.Error, ValueError):
        return None

    if not isinstance(data, dict):
        return None
    exp = data.get("exp")
    if isinstance(exp, bool) or not isinstance(exp, (int, float)) or exp <= 0:
        return None
    return int(exp)


def should_refresh(token: Optional[str], now: float, threshold_secs: float) -> bool:
    """
    Decide whether a token is due for refresh.

    Args:
        token: Bearer token.
        now: Current time in epoch seconds.
        threshold_secs: Refresh when fewer than this many seconds remain.

    Returns:
        True when the expiry is undecodable or closer than the threshold.
    """
    exp = decode_token_expiry(token)
    if exp is None:
        return True
    return exp - now < threshold_secs


class TokenLifecycle:
    """
    Keeps a room's bearer token fresh.

    Refresh calls are serialized: a caller that queued behind an in-flight
    refresh reuses the newly stored token instead of refreshing again.
    """

    def __init__(
        self,
        gateway,
        store: SessionStore,
        threshold_secs: float = 60 * 60,
        clock: Callable[[], float] = time.time,
    ):
        """
        Args:
            gateway: AuthGateway (anything with an async refresh_token).
            store: Where refreshed tokens are persisted.
            threshold_secs: Refresh window before expiry.
            clock: Wall-clock time source in epoch seconds.
        """
        self.gateway = gateway
        self.store = store
        self.threshold_secs = threshold_secs
        self.clock = clock
        self._lock = asyncio.Lock()

    def should_refresh(self, token: Optional[str]) -> bool:
        return should_refresh(token, self.clock(), self.threshold_secs)

    async def refresh_if_needed(self, token: Optional[str], room_id: str) -> Optional[str]:
        """
        Return a token that is safe to authenticate with.

        Args:
            token: Current token.
            room_id: Room the token belongs to.

        Returns:
            The current token if still fresh, a new one after a successful
            refresh, or None if the refresh failed.
        """
        if not token or not room_id:
            return token
        if not self.should_refresh(token):
            return token

        async with self._lock:
            stored = await self.store.get_token(room_id)
            if stored and stored != token and not self.should_refresh(stored):
                logger.debug(f"Reusing token refreshed concurrently for room {room_id}")
                return stored

            try:
                return await self._refresh(token, room_id)
            except BuzzerError as e:
                logger.warning(f"Token refresh failed for room {room_id}: {e.code}")
                return None

    async def probe(self, token: str, room_id: str) -> Optional[BuzzerError]:
        """
        Refresh unconditionally to learn whether the session is still valid.

        Returns:
            None on success, SessionInvalidError if the server no longer
            recognizes the room or user, AuthExpiredError otherwise.
        """
        async with self._lock:
            try:
                await self._refresh(token, room_id)
            except ApiError as e:
                if e.is_session_invalid:
                    return SessionInvalidError(e.reason, f"Session no longer valid: {e.reason}")
                return AuthExpiredError(e.reason, f"Token refresh failed: {e.reason}")
            except BuzzerError as e:
                return AuthExpiredError(e.code, e.message)
        return None

    async def _refresh(self, token: str, room_id: str) -> str:
        try:
            new_token = await self.gateway.refresh_token(room_id, token)
        except ApiError as e:
            if e.is_room_gone:
                logger.info(f"Room {room_id} no longer exists, dropping active room pointer")
                await self.store.clear_active_room_id()
            raise

        old_exp = decode_token_expiry(token)
        new_exp = decode_token_expiry(new_token)
        if old_exp and new_exp and new_exp <= old_exp:
            logger.warning(f"Refreshed token for room {room_id} does not extend expiry")

        await self.store.persist(room_id, token=new_token)
        logger.info(f"Refreshed token for room {room_id} (exp={new_exp})")
        return new_token


class RefreshScheduler:
    """
    Periodic background refresh for one active room session.

    The interval is shorter than the refresh threshold, so an idle client
    still refreshes before its token expires.
    """

    def __init__(self, interval_secs: float, refresh: Callable[[], Awaitable[None]]):
        """
        Args:
            interval_secs: Seconds between refresh checks.
            refresh: Coroutine function performing one check.
        """
        self.interval_secs = interval_secs
        self.refresh = refresh
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start the schedule, replacing any previous one."""
        self.stop()
        self._task = asyncio.create_task(self._run())

    def stop(self) -> None:
        """Cancel the schedule (no-op if not running)."""
        if self._task is not None:
            if self._task is not asyncio.current_task():
                self._task.cancel()
            self._task = None

    async def _run(self):
        while True:
            try:
                await asyncio.sleep(self.interval_secs)
                await self.refresh()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Scheduled token refresh failed: {e}")
