"""Lobby service boundary.

The lobby service owns rosters and capacity; the game server only asks it
whether a lobby exists, how many players it seats and whether it still
accepts players.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from http import HTTPStatus

import httpx
import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

logger = structlog.get_logger()

# Lobby statuses that still accept players. A lobby without a status is joinable.
JOINABLE_STATUSES = frozenset({"pending", "active"})

DEFAULT_MAX_PLAYERS = 8


class LobbyInfo(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    id: str | None = None
    max_players: int = Field(default=DEFAULT_MAX_PLAYERS, ge=1)
    status: str | None = None

    @property
    def joinable(self) -> bool:
        return self.status is None or self.status in JOINABLE_STATUSES


class LobbyClient(ABC):
    @abstractmethod
    async def get_lobby(self, lobby_id: str) -> LobbyInfo | None:
        """Return the lobby, or None when it does not exist or cannot be fetched."""

    async def aclose(self) -> None:  # noqa: B027
        """Release any resources held by the client."""


class HttpLobbyClient(LobbyClient):
    """Fetch lobbies with `GET {base_url}/{lobby_id}`.

    The service wraps the lobby in a `data` envelope. Transport errors,
    non-200 responses and malformed bodies are all treated as absence.
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)

    async def get_lobby(self, lobby_id: str) -> LobbyInfo | None:
        url = f"{self._base_url}/{lobby_id}"
        try:
            response = await self._client.get(url)
        except httpx.HTTPError as e:
            logger.warning("lobby request failed", lobby_id=lobby_id, error=str(e))
            return None
        if response.status_code != HTTPStatus.OK:
            logger.info("lobby not available", lobby_id=lobby_id, status_code=response.status_code)
            return None
        try:
            data = response.json().get("data")
            if data is None:
                return None
            return LobbyInfo.model_validate(data)
        except (ValueError, AttributeError, ValidationError) as e:
            logger.warning("malformed lobby response", lobby_id=lobby_id, error=str(e))
            return None

    async def aclose(self) -> None:
        await self._client.aclose()


class StaticLobbyClient(LobbyClient):
    """In-memory lobby directory, for tests and running without a lobby service."""

    def __init__(self, lobbies: dict[str, LobbyInfo] | None = None, *, default: LobbyInfo | None = None) -> None:
        self._lobbies = dict(lobbies or {})
        self._default = default

    def add(self, lobby_id: str, lobby: LobbyInfo) -> None:
        self._lobbies[lobby_id] = lobby

    async def get_lobby(self, lobby_id: str) -> LobbyInfo | None:
        return self._lobbies.get(lobby_id, self._default)
