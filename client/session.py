"""
Buzzer client session.

BuzzerSession is the object a front-end drives. It owns the local Session
record, the roster, the round state machine, the realtime connection, the
token refresh schedule and the notice board, and it is the only place that
moves the client between the landing and room views.

Typical use:
    session = BuzzerSession(gateway, store, sink)
    await session.create_room("Alice")      # view -> room, socket opens
    await session.send_buzz()
    await session.leave()                   # view -> landing
"""

import logging
import time
from typing import Callable, Optional

from config import ClientConfig, config as default_config
from connection import ConnectionManager, ConnectFn
from errors import (
    AUTH_PENDING,
    INVALID_EMPTY_NAME,
    MISSING_TOKEN_OR_ROOM,
    ROOM_NOT_FOUND,
    ApiError,
    BuzzerError,
    ConfigurationError,
    ProtocolError,
    RateLimitedError,
    SessionInvalidError,
    TransportError,
)
from handlers import HANDLERS
from logging_config import player_name_var, room_id_var
from models import events
from models.events import ServerEvent
from models.session import ConnectionPhase, Participant, Role, Session, View
from round_state import RoundStateMachine
from roster import RosterReconciler
from services.notifications import NoticeBoard, NotificationSink, Tone
from services.ratelimit import OutboundMessageLimiter, RetryCooldown
from services.token_lifecycle import RefreshScheduler, TokenLifecycle
from stores.session_store import SessionStore

logger = logging.getLogger(__name__)


class BuzzerSession:
    """
    Client-side session and round-state engine.

    Attributes:
        session: Current Session, or None on the landing view.
        view: LANDING or ROOM.
        room_id: Room selected on the landing view (kept across teardown so
            the user can rejoin).
        address_room_id: Room id exposed in the client's address (the
            invite-link parameter); cleared on teardown.
        error: Last user-facing error string, if any.
    """

    def __init__(
        self,
        gateway,
        store: SessionStore,
        sink: Optional[NotificationSink] = None,
        cfg: Optional[ClientConfig] = None,
        connect_fn: Optional[ConnectFn] = None,
        clock: Callable[[], float] = time.monotonic,
        wall_clock: Callable[[], float] = time.time,
    ):
        """
        Args:
            gateway: AuthGateway for REST calls.
            store: Per-room auth persistence.
            sink: Receiver for notices, flashes and sounds.
            cfg: Client configuration (defaults to the global config).
            connect_fn: WebSocket opener (defaults to websockets.connect).
            clock: Monotonic clock for cooldowns and frame limiting.
            wall_clock: Epoch clock for token expiry checks.
        """
        self.config = cfg or default_config
        self.gateway = gateway
        self.store = store

        self.notices = NoticeBoard(
            sink,
            notice_duration_ms=self.config.NOTICE_DURATION_MS,
            flash_duration_ms=self.config.FLASH_DURATION_MS,
        )
        self.token_lifecycle = TokenLifecycle(
            gateway,
            store,
            threshold_secs=self.config.REFRESH_THRESHOLD_SECS,
            clock=wall_clock,
        )
        self.roster = RosterReconciler()
        self.round = RoundStateMachine(self.roster, reopen_on_timeout=self.config.REOPEN_ON_TIMEOUT)
        self.connection = ConnectionManager(
            self,
            self.token_lifecycle,
            self.config.WS_BASE_URL,
            max_failures=self.config.MAX_CONNECTION_FAILURES,
            reconnect_delay_secs=self.config.RECONNECT_DELAY_SECS,
            connect_fn=connect_fn,
        )
        self.refresh_scheduler = RefreshScheduler(
            self.config.REFRESH_CHECK_INTERVAL_SECS,
            self._scheduled_refresh,
        )
        self.cooldown = RetryCooldown(clock)
        self.outbound_limiter = OutboundMessageLimiter(clock=clock)

        self.session: Optional[Session] = None
        self.view = View.LANDING
        self.room_id = ""
        self.address_room_id: Optional[str] = None
        self.error: Optional[str] = None
        self._auth_pending = False

    # -------------------------------------------------------------------------
    # Read-only views of state
    # -------------------------------------------------------------------------

    @property
    def role(self) -> Optional[Role]:
        return self.session.role if self.session else None

    @property
    def token(self) -> Optional[str]:
        return self.session.token if self.session else None

    @property
    def my_name(self) -> str:
        return self.session.display_name if self.session else ""

    @property
    def participants(self) -> list[Participant]:
        return self.roster.participants

    @property
    def connection_phase(self) -> ConnectionPhase:
        return self.connection.phase

    @property
    def auth_pending(self) -> bool:
        return self._auth_pending

    @property
    def locked_out(self) -> bool:
        return self.roster.is_locked_out(self.my_name)

    @property
    def can_buzz(self) -> bool:
        return self.in_room() and self.round.can_buzz(self.connection.is_connected, self.my_name)

    def in_room(self) -> bool:
        return self.view == View.ROOM and self.session is not None

    def status_error(self) -> Optional[str]:
        """User-facing error, including a live cooldown countdown."""
        if self.cooldown.active:
            return RateLimitedError(self.cooldown.remaining()).message
        return self.error

    def invite_link(self) -> Optional[str]:
        room_id = self.session.room_id if self.session else self.room_id
        if not room_id:
            return None
        return f"{self.config.PUBLIC_URL}?room={room_id}"

    # -------------------------------------------------------------------------
    # Create / join / restore
    # -------------------------------------------------------------------------

    def _check_auth_allowed(self) -> None:
        if self._auth_pending:
            raise BuzzerError(AUTH_PENDING, "Another request is in progress")
        self.cooldown.check()

    def _record_failure(self, error: BuzzerError) -> BuzzerError:
        """Turn a REST failure into user-facing state; returns what to raise."""
        if isinstance(error, ApiError) and error.is_rate_limited and error.retry_after:
            self.cooldown.start(error.retry_after)
            limited = RateLimitedError(error.retry_after)
            self.error = limited.message
            return limited
        self.error = error.message
        return error

    async def create_room(self, name: str, answer_window_ms: Optional[int] = None) -> Session:
        """
        Create a room and enter it as admin.

        Raises:
            RateLimitedError: While a 429 cooldown is running.
            ApiError / TransportError: If the request fails.
        """
        self._check_auth_allowed()
        name = name.strip()
        if not name:
            raise ConfigurationError(INVALID_EMPTY_NAME, "Enter a name first")
        if answer_window_ms is None:
            answer_window_ms = self.config.DEFAULT_ANSWER_WINDOW_MS

        self.error = None
        self._auth_pending = True
        try:
            data = await self.gateway.create_room(name, answer_window_ms)
        except (ApiError, TransportError, ProtocolError) as e:
            failure = self._record_failure(e)
            if failure is e:
                raise
            raise failure from e
        finally:
            self._auth_pending = False

        self.room_id = data.room_id
        self.session = Session(
            room_id=data.room_id,
            display_name=name,
            role=Role.ADMIN,
            token=data.token,
            answer_window_ms=data.answer_window_in_ms,
        )
        await self.store.persist(data.room_id, token=data.token, name=name, role=Role.ADMIN)
        await self.store.set_active_room_id(data.room_id)
        logger.info(f"Created room {data.room_id} as {name}")

        self._enter_room()
        self.notices.show_notice("Room created. You are the admin.", Tone.OK, 3000)
        return self.session

    async def join_room(self, room_id: str, name: str = "") -> Session:
        """
        Join a room, or rejoin it with the stored token.

        Raises:
            RateLimitedError: While a 429 cooldown is running.
            ApiError / TransportError: If the request fails.
        """
        self._check_auth_allowed()
        room_id = room_id.strip()
        if not room_id:
            raise ConfigurationError(MISSING_TOKEN_OR_ROOM, "Enter a room id first")

        stored = await self.store.get(room_id)
        display_name = name.strip() or stored.name or ""
        self.room_id = room_id
        self.error = None
        self._auth_pending = True
        try:
            data = await self.gateway.join_room(room_id, display_name, token=stored.token)
        except (ApiError, TransportError, ProtocolError) as e:
            failure = self._record_failure(e)
            if failure is e:
                raise
            raise failure from e
        finally:
            self._auth_pending = False

        token = data.token or stored.token
        if not token:
            self.error = MISSING_TOKEN_OR_ROOM
            raise ConfigurationError(MISSING_TOKEN_OR_ROOM, "Server issued no token")

        self.session = Session(
            room_id=room_id,
            display_name=display_name,
            role=data.role,
            token=token,
            answer_window_ms=data.answer_window_in_ms,
        )
        await self.store.persist(room_id, token=data.token, name=display_name, role=data.role)
        await self.store.set_active_room_id(room_id)
        logger.info(f"Joined room {room_id} as {display_name} ({data.role.value})")

        self._enter_room()
        return self.session

    async def restore(self, room_param: Optional[str] = None) -> bool:
        """
        Rehydrate a previous session from the store.

        Args:
            room_param: Room id from an invite link, if the client was
                opened with one.

        Returns:
            True if the client re-entered a room.
        """
        active_room_id = await self.store.get_active_room_id()

        if room_param:
            self.room_id = room_param
            if room_param != active_room_id:
                return False
            stored = await self.store.get(room_param)
            if not stored.is_complete():
                return False
            self.session = Session(
                room_id=room_param,
                display_name=stored.name,
                role=stored.role,
                token=stored.token,
            )
            self._enter_room()
            return True

        if not active_room_id:
            return False

        self.room_id = active_room_id
        stored = await self.store.get(active_room_id)
        if not stored.token or not stored.name:
            return False
        self.session = Session(
            room_id=active_room_id,
            display_name=stored.name,
            role=stored.role or Role.PLAYER,
            token=stored.token,
        )
        self._enter_room()
        return True

    def _enter_room(self) -> None:
        self.view = View.ROOM
        self.address_room_id = self.session.room_id
        room_id_var.set(self.session.room_id)
        player_name_var.set(self.session.display_name)
        self.refresh_scheduler.start()
        self.connection.ensure_connected()

    # -------------------------------------------------------------------------
    # Teardown
    # -------------------------------------------------------------------------

    async def leave(self) -> None:
        await self.reset_session("left")

    async def reset_session(self, reason: str = "reset") -> None:
        """
        Return to the pre-join state.

        Cancels timers and background work and closes the socket before any
        state is cleared. Calling it again is a no-op.
        """
        was_in_room = self.session is not None or self.view == View.ROOM

        self.refresh_scheduler.stop()
        self.notices.cancel_timers()
        await self.connection.close()

        self.session = None
        self.roster.clear()
        self.round.reset()
        self.outbound_limiter.reset()
        self.address_room_id = None
        self.view = View.LANDING
        room_id_var.set(None)
        player_name_var.set(None)

        if was_in_room:
            logger.info(f"Session reset ({reason})")

    # -------------------------------------------------------------------------
    # ConnectionManager owner hooks
    # -------------------------------------------------------------------------

    def credentials(self) -> tuple[Optional[str], Optional[str]]:
        if not self.session or not self.session.has_credentials():
            return None, None
        return self.session.token, self.session.room_id

    def update_token(self, token: str) -> None:
        if self.session:
            self.session.token = token

    def on_connected(self) -> None:
        self.round.reset()
        self.outbound_limiter.reset()

    def on_connect_error(self, error: BuzzerError) -> None:
        self.error = error.code

    async def on_connection_lost(self, error: Optional[BuzzerError]) -> None:
        """Repeated connection failures: end the session."""
        await self.reset_session("connection_lost")
        if isinstance(error, SessionInvalidError):
            if ROOM_NOT_FOUND in error.code:
                text = "This room no longer exists."
            else:
                text = "You are no longer in this room."
        else:
            text = "Connection lost. Rejoin to continue."
        self.notices.show_notice(text, Tone.BAD, 6000)

    async def handle_frame(self, raw) -> None:
        """Parse one server frame and run its handler."""
        try:
            event = ServerEvent.from_json(raw)
        except ProtocolError as e:
            logger.warning(f"Ignoring server frame: {e.message}")
            return

        handler = HANDLERS.get(event.event_type)
        if not handler:
            return
        try:
            await handler(event, self)
        except Exception:
            logger.exception(f"Handler for {event.event_type.value} failed")

    async def apply_role(self, role: Optional[Role]) -> None:
        """Adopt a role reflected back by the server."""
        if not self.session or role is None or role == self.session.role:
            return
        self.session.role = role
        await self.store.persist(self.session.room_id, role=role)

    async def _scheduled_refresh(self) -> None:
        if not self.session or not self.session.token:
            return
        room_id = self.session.room_id
        new_token = await self.token_lifecycle.refresh_if_needed(self.session.token, room_id)
        if new_token and self.session and self.session.room_id == room_id:
            self.session.token = new_token

    # -------------------------------------------------------------------------
    # Commands to the server
    # -------------------------------------------------------------------------

    async def _send(self, frame: str) -> bool:
        if not self.connection.is_connected:
            return False
        if not self.outbound_limiter.check():
            logger.debug("Outbound frame dropped by local rate limit")
            return False
        return await self.connection.send(frame)

    async def send_buzz(self) -> bool:
        """Buzz, unless the round state says it would certainly be refused."""
        if not self.can_buzz:
            return False
        return await self._send(events.buzz())

    async def start_round(self) -> bool:
        return await self._send(events.start_round())

    async def continue_round(self) -> bool:
        return await self._send(events.continue_round())

    async def kick(self, name: str) -> bool:
        """Ask the server to remove `name`; applied once the roster reflects it."""
        return await self._send(events.kick(name))

    async def set_admin(self, name: str) -> bool:
        """Ask the server to make `name` admin; applied once the roster reflects it."""
        return await self._send(events.set_admin(name))
