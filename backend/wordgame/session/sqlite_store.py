"""SQLite-backed room store."""

from __future__ import annotations

import asyncio
import sqlite3
import time
from typing import TYPE_CHECKING

import structlog
from pydantic import ValidationError

from wordgame.logic.exceptions import RoomStoreError
from wordgame.session.models import GameRoom
from wordgame.session.store import DEFAULT_ROOM_RETENTION_SECONDS, RoomStore

if TYPE_CHECKING:
    from collections.abc import Callable

    from shared.db.connection import Database

logger = structlog.get_logger()


class SqliteRoomStore(RoomStore):
    """SQLite implementation of RoomStore.

    Stores each room as a JSON document with an indexed expiry column.
    Every write pushes the expiry out by the retention window; reads never
    return expired rows.
    """

    def __init__(
        self,
        db: Database,
        retention_seconds: float = DEFAULT_ROOM_RETENTION_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._db = db
        self._retention_seconds = retention_seconds
        self._clock = clock
        self._lock = asyncio.Lock()

    async def get(self, room_id: str) -> GameRoom | None:
        async with self._lock:
            try:
                row = self._db.connection.execute(
                    "SELECT data FROM rooms WHERE id = ? AND expires_at > ?",
                    (room_id, self._clock()),
                ).fetchone()
            except (sqlite3.Error, RuntimeError) as e:
                raise RoomStoreError(f"failed to read room {room_id}") from e
        if row is None:
            return None
        try:
            return GameRoom.from_document(row[0])
        except ValidationError as e:
            raise RoomStoreError(f"corrupt room document for {room_id}") from e

    async def save(self, room: GameRoom) -> None:
        document = room.to_document()
        async with self._lock:
            try:
                self._db.connection.execute(
                    "INSERT INTO rooms (id, last_active, expires_at, data) VALUES (?, ?, ?, ?) "
                    "ON CONFLICT(id) DO UPDATE SET "
                    "last_active = excluded.last_active, "
                    "expires_at = excluded.expires_at, "
                    "data = excluded.data",
                    (
                        room.id,
                        room.last_active.isoformat(),
                        self._clock() + self._retention_seconds,
                        document,
                    ),
                )
                self._db.connection.commit()
            except (sqlite3.Error, RuntimeError) as e:
                raise RoomStoreError(f"failed to save room {room.id}") from e

    async def purge_expired(self) -> int:
        async with self._lock:
            try:
                cursor = self._db.connection.execute("DELETE FROM rooms WHERE expires_at <= ?", (self._clock(),))
                self._db.connection.commit()
            except (sqlite3.Error, RuntimeError) as e:
                raise RoomStoreError("failed to purge expired rooms") from e
        if cursor.rowcount:
            logger.info("purged expired rooms", count=cursor.rowcount)
        return cursor.rowcount
