"""Abstract interface for room persistence plus an in-memory implementation."""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from pydantic import ValidationError

from wordgame.logic.exceptions import RoomStoreError
from wordgame.session.models import GameRoom

if TYPE_CHECKING:
    from collections.abc import Callable

# Rooms expire after a day without a write.
DEFAULT_ROOM_RETENTION_SECONDS = 60 * 60 * 24


class RoomStore(ABC):
    """Durable mapping from room id to serialized room state.

    Implementations raise RoomStoreError for any backend failure and return
    None for rooms that are absent or past their retention window.
    """

    @abstractmethod
    async def get(self, room_id: str) -> GameRoom | None: ...

    @abstractmethod
    async def save(self, room: GameRoom) -> None: ...

    @abstractmethod
    async def purge_expired(self) -> int:
        """Delete expired rooms. Return the number removed."""


class InMemoryRoomStore(RoomStore):
    """Process-local store that keeps serialized documents.

    Documents are stored as JSON text so every read yields a fresh copy,
    matching the isolation of a real backend.
    """

    def __init__(
        self,
        retention_seconds: float = DEFAULT_ROOM_RETENTION_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._documents: dict[str, tuple[str, float]] = {}  # room_id -> (document, expires_at)
        self._retention_seconds = retention_seconds
        self._clock = clock

    async def get(self, room_id: str) -> GameRoom | None:
        entry = self._documents.get(room_id)
        if entry is None:
            return None
        document, expires_at = entry
        if self._clock() >= expires_at:
            self._documents.pop(room_id, None)
            return None
        try:
            return GameRoom.from_document(document)
        except ValidationError as e:
            raise RoomStoreError(f"corrupt room document for {room_id}") from e

    async def save(self, room: GameRoom) -> None:
        self._documents[room.id] = (room.to_document(), self._clock() + self._retention_seconds)

    async def purge_expired(self) -> int:
        now = self._clock()
        expired = [room_id for room_id, (_, expires_at) in self._documents.items() if now >= expires_at]
        for room_id in expired:
            del self._documents[room_id]
        return len(expired)
