"""
Realtime connection management for the buzzer client.

The ConnectionManager owns the single WebSocket to the room. It makes sure
the token is fresh before every handshake, feeds received frames to its
owner one at a time, and decides after each close whether to reconnect or
give up on the session.

Lifecycle:
    disconnected -> connecting -> connected -> disconnected

Reconnects are edge-triggered: each close schedules at most one reconnect.
After more than `max_failures` consecutive failures the manager probes the
session with one token refresh and then asks the owner to tear down.
"""

import asyncio
from typing import Awaitable, Callable, Optional
from urllib.parse import quote, urlencode

import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException

from errors import MISSING_TOKEN_OR_ROOM, ConfigurationError
from logging_config import get_logger
from models.session import ConnectionPhase
from services.notifications import PendingTimer
from services.token_lifecycle import TokenLifecycle

logger = get_logger(__name__)

ConnectFn = Callable[[str], Awaitable]


class ConnectionManager:
    """
    Owns the realtime socket for one client.

    The owner (a BuzzerSession) is passed in explicitly and must provide:
        credentials() -> (token, room_id)
        in_room() -> bool
        update_token(token)
        on_connected()
        async handle_frame(raw)
        async on_connection_lost(error)
        on_connect_error(error)

    Every socket callback carries the generation it was started under; a
    callback from a superseded generation is ignored, so a handle closed by
    teardown can never act on a newer session.
    """

    def __init__(
        self,
        owner,
        token_lifecycle: TokenLifecycle,
        ws_base_url: str,
        max_failures: int = 3,
        reconnect_delay_secs: float = 1.0,
        connect_fn: Optional[ConnectFn] = None,
    ):
        self.owner = owner
        self.token_lifecycle = token_lifecycle
        self.ws_base_url = ws_base_url.rstrip("/")
        self.max_failures = max_failures
        self.reconnect_delay_secs = reconnect_delay_secs
        self.connect_fn = connect_fn or websockets.connect

        self.phase = ConnectionPhase.DISCONNECTED
        self.failures = 0
        self._ws = None
        self._generation = 0
        self._reader_task: Optional[asyncio.Task] = None
        self._connect_task: Optional[asyncio.Task] = None
        self._reconnect_timer = PendingTimer()

    @property
    def is_connected(self) -> bool:
        return self.phase == ConnectionPhase.CONNECTED and self._ws is not None

    @property
    def reconnect_pending(self) -> bool:
        return self._reconnect_timer.pending

    def socket_url(self, room_id: str, token: str) -> str:
        """Build the realtime URL with the bearer token in the query string."""
        return f"{self.ws_base_url}/ws/{quote(room_id, safe='')}?{urlencode({'token': token})}"

    # -------------------------------------------------------------------------
    # Opening
    # -------------------------------------------------------------------------

    def ensure_connected(self) -> None:
        """
        Start a connection attempt if the owner is in a room and none is
        live or in flight.
        """
        if not self.owner.in_room():
            return
        if self.phase != ConnectionPhase.DISCONNECTED:
            return
        if self._connect_task is not None and not self._connect_task.done():
            return
        self._reconnect_timer.cancel()
        self._connect_task = asyncio.create_task(self._connect_guarded())

    async def _connect_guarded(self) -> None:
        try:
            await self.connect()
        except ConfigurationError as e:
            logger.error(f"Cannot connect: {e.code}")
            self.owner.on_connect_error(e)

    async def connect(self) -> None:
        """
        Open the socket for the owner's room.

        Raises:
            ConfigurationError: If no token/room pair is available.
        """
        token, room_id = self.owner.credentials()
        if not token or not room_id:
            raise ConfigurationError(MISSING_TOKEN_OR_ROOM, "No token or room to connect with")

        await self._discard_socket()
        self._generation += 1
        generation = self._generation
        self.phase = ConnectionPhase.CONNECTING
        log = logger.with_context(room_id=room_id)

        fresh_token = await self.token_lifecycle.refresh_if_needed(token, room_id)
        if generation != self._generation:
            return
        if fresh_token is None:
            log.warning("No valid token, not connecting")
            await self._handle_closed(generation, "token refresh failed")
            return
        if fresh_token != token:
            self.owner.update_token(fresh_token)

        try:
            ws = await self.connect_fn(self.socket_url(room_id, fresh_token))
        except (OSError, asyncio.TimeoutError, WebSocketException) as e:
            if generation == self._generation:
                await self._handle_closed(generation, e)
            return

        if generation != self._generation:
            await ws.close()
            return

        self._ws = ws
        self.phase = ConnectionPhase.CONNECTED
        self.failures = 0
        log.info("Connected")
        self.owner.on_connected()
        self._reader_task = asyncio.create_task(self._read_loop(ws, generation))

    # -------------------------------------------------------------------------
    # Receiving
    # -------------------------------------------------------------------------

    async def _read_loop(self, ws, generation: int) -> None:
        error = None
        try:
            async for raw in ws:
                if generation != self._generation:
                    return
                await self.owner.handle_frame(raw)
                if generation != self._generation:
                    return
        except ConnectionClosed as e:
            error = e
        except (OSError, WebSocketException) as e:
            error = e

        if generation == self._generation:
            await self._handle_closed(generation, error)

    async def _handle_closed(self, generation: int, error=None) -> None:
        if generation != self._generation:
            return
        self._ws = None
        self._reader_task = None
        self.phase = ConnectionPhase.DISCONNECTED
        self.failures += 1
        logger.info(f"Connection closed ({error or 'clean'}), failures={self.failures}")

        if not self.owner.in_room():
            return

        if self.failures > self.max_failures:
            await self._give_up(generation)
        else:
            self._reconnect_timer.start(self.reconnect_delay_secs, self.ensure_connected)

    async def _give_up(self, generation: int) -> None:
        """Probe the session once, then hand teardown to the owner."""
        token, room_id = self.owner.credentials()
        error = None
        if token and room_id:
            logger.warning(f"{self.failures} consecutive connection failures, probing session")
            error = await self.token_lifecycle.probe(token, room_id)
        if generation != self._generation:
            return
        await self.owner.on_connection_lost(error)

    # -------------------------------------------------------------------------
    # Sending / closing
    # -------------------------------------------------------------------------

    async def send(self, frame: str) -> bool:
        """
        Send one text frame.

        Returns:
            True if the frame was handed to the socket.
        """
        if not self.is_connected:
            return False
        try:
            await self._ws.send(frame)
        except ConnectionClosed:
            return False
        return True

    async def _discard_socket(self) -> None:
        ws = self._ws
        self._ws = None
        reader = self._reader_task
        self._reader_task = None
        if reader is not None and reader is not asyncio.current_task():
            reader.cancel()
        if ws is not None:
            try:
                await ws.close()
            except (OSError, WebSocketException) as e:
                logger.debug(f"Error closing socket: {e}")

    async def close(self) -> None:
        """
        Tear down: cancel pending work, close the socket, forget failures.

        Safe to call repeatedly.
        """
        self._generation += 1
        self._reconnect_timer.cancel()
        connect_task = self._connect_task
        self._connect_task = None
        if connect_task is not None and connect_task is not asyncio.current_task():
            connect_task.cancel()
        await self._discard_socket()
        self.phase = ConnectionPhase.DISCONNECTED
        self.failures = 0
