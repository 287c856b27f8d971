from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from wordgame.tests.mocks.connection import MockConnection

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from wordgame.session.manager import SessionManager
    from wordgame.session.models import GameRoom
    from wordgame.session.store import RoomStore


async def join_players(
    manager: SessionManager,
    room_id: str = "room-1",
    names: tuple[str, ...] = ("alice", "bob", "carol"),
) -> list[MockConnection]:
    """Join one connection per name; player ids are the names."""
    connections = []
    for name in names:
        conn = MockConnection()
        manager.register_connection(conn)
        await manager.join_room(conn, lobby_id=room_id, player_id=name, username=name.title())
        connections.append(conn)
    return connections


async def start_game(
    manager: SessionManager,
    room_id: str = "room-1",
    names: tuple[str, ...] = ("alice", "bob", "carol"),
) -> list[MockConnection]:
    """Join players, start the game as the first of them, and clear message history."""
    connections = await join_players(manager, room_id, names)
    await manager.start_game(room_id, names[0])
    for conn in connections:
        conn.clear()
    return connections


async def load(store: RoomStore, room_id: str = "room-1") -> GameRoom:
    room = await store.get(room_id)
    assert room is not None
    return room


def word_for(room: GameRoom) -> str:
    """Build an unused word satisfying a contains-letter rule (rule index 1)."""
    assert room.current_rule is not None
    letter = room.current_rule.letter
    return letter * 4 + "zz"


async def wait_until(predicate: Callable[[], Awaitable[bool]], timeout: float = 2.0) -> None:
    async def _poll() -> None:
        while not await predicate():
            await asyncio.sleep(0.005)

    await asyncio.wait_for(_poll(), timeout)


def assert_single_current(room: GameRoom) -> None:
    """A live game has exactly one current player, and that player can still play."""
    current = [p for p in room.players if p.is_current_player]
    if not room.in_progress:
        assert current == []
        return
    assert len(current) == 1, [p.id for p in current]
    assert current[0].is_active
    assert room.players[room.current_player_index] is current[0]
