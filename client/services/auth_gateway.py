"""
REST client for room creation, joining and token refresh.

All three endpoints take and return JSON. A non-2xx response becomes an
ApiError whose reason is the response body text; HTTP 429 responses carry
the Retry-After header (seconds) on the error so callers can impose a
cooldown.
"""

import logging
from typing import Optional
from urllib.parse import quote

import httpx
from pydantic import BaseModel, ValidationError

from errors import (
    MALFORMED_MESSAGE,
    TRANSPORT_FAILED,
    ApiError,
    ProtocolError,
    TransportError,
)
from models.session import Role

logger = logging.getLogger(__name__)


class CreateRoomResponse(BaseModel):
    room_id: str
    token: str
    answer_window_in_ms: Optional[int] = None


class JoinRoomResponse(BaseModel):
    token: Optional[str] = None
    answer_window_in_ms: Optional[int] = None
    role: Role = Role.PLAYER


class RefreshTokenResponse(BaseModel):
    new_token: Optional[str] = None
    token: Optional[str] = None


def parse_retry_after(value: Optional[str]) -> Optional[float]:
    """Parse a Retry-After header given in seconds."""
    if not value:
        return None
    try:
        seconds = float(value.strip())
    except ValueError:
        return None
    return seconds if seconds > 0 else None


class AuthGateway:
    """
    Thin async wrapper over the room REST endpoints.

    Usage:
        gateway = AuthGateway("http://localhost:3000/api")
        created = await gateway.create_room("Alice", 5000)
        await gateway.aclose()
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize the gateway.

        Args:
            base_url: API root, e.g. "http://localhost:3000/api".
            timeout: Per-request timeout in seconds.
            client: Pre-built client (tests pass one with a MockTransport).
        """
        self.base_url = base_url.rstrip("/")
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def aclose(self) -> None:
        await self._client.aclose()

    def _url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    async def _post(
        self,
        path: str,
        model: type[BaseModel],
        json: Optional[dict] = None,
        token: Optional[str] = None,
    ) -> BaseModel:
        headers = {}
        if token:
            headers["Authorization"] = f"Bearer {token}"

        try:
            response = await self._client.post(self._url(path), json=json, headers=headers)
        except httpx.TimeoutException:
            raise TransportError(TRANSPORT_FAILED, "Server is not responding. Try again later.") from None
        except httpx.RequestError as e:
            raise TransportError(TRANSPORT_FAILED, f"Failed to reach server: {e}") from None

        if response.is_error:
            retry_after = None
            if response.status_code == 429:
                retry_after = parse_retry_after(response.headers.get("Retry-After"))
            reason = response.text.strip()
            logger.info(f"POST {path} failed: {response.status_code} {reason!r}")
            raise ApiError(response.status_code, reason, retry_after)

        try:
            return model.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise ProtocolError(MALFORMED_MESSAGE, f"Unexpected response from {path}: {e}") from None

    async def create_room(self, name: str, answer_window_ms: Optional[int] = None) -> CreateRoomResponse:
        """
        Create a room; the caller becomes its admin.

        Args:
            name: Creator's display name.
            answer_window_ms: Answer window, or None for the server default.
        """
        return await self._post(
            "/rooms",
            CreateRoomResponse,
            json={"name": name, "answer_window_in_ms": answer_window_ms},
        )

    async def join_room(self, room_id: str, name: str, token: Optional[str] = None) -> JoinRoomResponse:
        """
        Join a room, or rejoin it when a previously issued token is supplied.

        Args:
            room_id: Room to join.
            name: Display name for a first join.
            token: Stored bearer token for a rejoin.
        """
        return await self._post(
            f"/rooms/{quote(room_id, safe='')}/join",
            JoinRoomResponse,
            json={"name": name.strip()},
            token=token,
        )

    async def refresh_token(self, room_id: str, token: str) -> str:
        """
        Exchange a bearer token for a fresh one.

        Returns:
            The new token (the current one if the server omitted it).
        """
        data = await self._post(
            f"/rooms/{quote(room_id, safe='')}/refresh_token",
            RefreshTokenResponse,
            token=token,
        )
        new_token = data.new_token or data.token
        if not new_token:
            logger.warning(f"Refresh for room {room_id} returned no token, keeping current one")
            return token
        return new_token
