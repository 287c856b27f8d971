"""Manage per-room turn countdowns for active games."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from contextlib import AbstractAsyncContextManager
from typing import TYPE_CHECKING

import structlog

from wordgame.logic.exceptions import RoomStoreError
from wordgame.logic.timer import DEFAULT_TIME_LIMIT_POLICY, TimeLimitPolicy

if TYPE_CHECKING:
    from wordgame.session.models import GameRoom
    from wordgame.session.store import RoomStore

logger = structlog.get_logger()

# Tick receives the freshly persisted room, timeout receives the room id.
TickCallback = Callable[["GameRoom"], Awaitable[None]]
TimeoutCallback = Callable[[str], Awaitable[None]]
LockProvider = Callable[[str], AbstractAsyncContextManager[None]]


class TimerManager:
    """Own at most one live countdown per room.

    Each tick reloads the room under the room lock, decrements its time
    limit, persists it and notifies the tick callback. When the time limit
    reaches zero the countdown retires itself and hands off to the timeout
    callback. This class makes no game decisions; the caller
    (SessionManager) decides what a timeout means.
    """

    def __init__(
        self,
        store: RoomStore,
        *,
        on_tick: TickCallback,
        on_timeout: TimeoutCallback,
        lock_for: LockProvider,
        tick_seconds: float = 1.0,
        policy: TimeLimitPolicy = DEFAULT_TIME_LIMIT_POLICY,
    ) -> None:
        self._store = store
        self._on_tick = on_tick
        self._on_timeout = on_timeout
        self._lock_for = lock_for
        self._tick_seconds = tick_seconds
        self._policy = policy
        self._countdowns: dict[str, asyncio.Task[None]] = {}  # room_id -> countdown task

    @property
    def active_count(self) -> int:
        return sum(1 for task in self._countdowns.values() if not task.done())

    def is_running(self, room_id: str) -> bool:
        task = self._countdowns.get(room_id)
        return task is not None and not task.done()

    def start(self, room_id: str) -> None:
        """Start a countdown for a room, replacing any countdown already running."""
        self.cancel(room_id)
        self._countdowns[room_id] = asyncio.create_task(self._run(room_id), name=f"countdown:{room_id}")

    def cancel(self, room_id: str) -> None:
        """Stop a room's countdown. No-op when none is running."""
        task = self._countdowns.pop(room_id, None)
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    def cancel_all(self) -> None:
        for room_id in list(self._countdowns):
            self.cancel(room_id)

    def _retire(self, room_id: str) -> None:
        """Drop the registry entry for the calling countdown, leaving newer ones alone."""
        if self._countdowns.get(room_id) is asyncio.current_task():
            del self._countdowns[room_id]

    async def _run(self, room_id: str) -> None:
        try:
            while True:
                await asyncio.sleep(self._tick_seconds)
                try:
                    remaining = await self._tick(room_id)
                except RoomStoreError:
                    logger.exception("countdown tick failed", room_id=room_id)
                    continue
                if remaining is None:
                    self._retire(room_id)
                    return
                if remaining <= 0:
                    self._retire(room_id)
                    await self._on_timeout(room_id)
                    return
        except asyncio.CancelledError:
            pass
        except (RuntimeError, OSError, ConnectionError, ValueError, RoomStoreError):
            logger.exception("countdown callback failed", room_id=room_id)

    async def _tick(self, room_id: str) -> int | None:
        """Advance a room's clock by one tick. Return the seconds left, or None to stop."""
        async with self._lock_for(room_id):
            room = await self._store.get(room_id)
            if room is None or not room.in_progress:
                return None
            if room.time_limit is None:
                room.time_limit = self._policy.time_limit(room.rules_completed)
            else:
                room.time_limit -= 1
            room.touch()
            await self._store.save(room)
            await self._on_tick(room)
            return room.time_limit
