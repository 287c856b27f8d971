import asyncio

import pytest

from wordgame.logic.enums import GameErrorCode, RoomPhase
from wordgame.logic.exceptions import GameRuleError, RoomNotFoundError
from wordgame.session.manager import (
    ALL_ELIMINATED_REASON,
    HIGHEST_SCORE_REASON,
    LAST_STANDING_REASON,
)
from wordgame.session.models import GameRoom, Player
from wordgame.tests.helpers import join_players, load, start_game
from wordgame.tests.mocks.connection import MockConnection


class TestPauseResume:
    async def test_pause_stops_countdown(self, manager, store):
        alice, bob, _ = await start_game(manager)

        await manager.pause_game("room-1")

        assert not manager.is_countdown_running("room-1")
        paused = bob.last_message("gamePaused")
        assert paused["reason"] == "Game paused by host"
        assert paused["roomCode"] == "ROOM-1"
        room = await load(store)
        assert room.in_progress
        assert room.time_limit == 10

    async def test_pause_requires_game_in_progress(self, manager):
        await join_players(manager)
        with pytest.raises(GameRuleError) as exc_info:
            await manager.pause_game("room-1")
        assert exc_info.value.code == GameErrorCode.GAME_NOT_IN_PROGRESS

    async def test_pause_unknown_room(self, manager):
        with pytest.raises(RoomNotFoundError):
            await manager.pause_game("nope")

    async def test_resume_restarts_from_stored_time(self, manager, store):
        alice, bob, _ = await start_game(manager)
        room = await load(store)
        room.time_limit = 6
        await store.save(room)
        await manager.pause_game("room-1")

        await manager.resume_game("room-1", "alice")

        assert manager.is_countdown_running("room-1")
        resumed = bob.last_message("gameResumed")
        assert resumed["timeLeft"] == 6
        assert resumed["currentPlayer"] == "Alice"
        assert [m["type"] for m in bob.sent_messages][-2:] == ["gameResumed", "timeUpdate"]

    async def test_only_host_can_resume(self, manager):
        await start_game(manager)
        await manager.pause_game("room-1")
        with pytest.raises(GameRuleError) as exc_info:
            await manager.resume_game("room-1", "bob")
        assert exc_info.value.code == GameErrorCode.NOT_HOST
        assert not manager.is_countdown_running("room-1")

    async def test_resume_while_running(self, manager):
        await start_game(manager)
        with pytest.raises(GameRuleError) as exc_info:
            await manager.resume_game("room-1", "alice")
        assert exc_info.value.code == GameErrorCode.NOT_PAUSED

    async def test_resume_requires_game_in_progress(self, manager):
        await join_players(manager)
        with pytest.raises(GameRuleError) as exc_info:
            await manager.resume_game("room-1", "alice")
        assert exc_info.value.code == GameErrorCode.GAME_NOT_IN_PROGRESS

    async def test_pause_from_unseated_connection(self, manager):
        await start_game(manager)
        with pytest.raises(GameRuleError) as exc_info:
            await manager.pause_game("room-1", connection_id="stranger")
        assert exc_info.value.code == GameErrorCode.NOT_IN_ROOM
        assert manager.is_countdown_running("room-1")

    async def test_any_seated_player_may_pause(self, manager):
        _, bob, _ = await start_game(manager)
        await manager.pause_game("room-1", connection_id=bob.connection_id)
        assert not manager.is_countdown_running("room-1")

    async def test_resume_from_another_players_connection(self, manager):
        _, bob, _ = await start_game(manager)
        await manager.pause_game("room-1")
        with pytest.raises(GameRuleError) as exc_info:
            await manager.resume_game("room-1", "alice", connection_id=bob.connection_id)
        assert exc_info.value.code == GameErrorCode.NOT_IN_ROOM
        assert not manager.is_countdown_running("room-1")


def _room(scores: dict[str, int], eliminated: tuple[str, ...] = ()) -> GameRoom:
    room = GameRoom(
        id="room-1",
        phase=RoomPhase.IN_PROGRESS,
        players=[Player(id=n, connection_id=n, username=n.title(), score=s) for n, s in scores.items()],
    )
    room.set_current(0)
    for name in eliminated:
        room.eliminate(room.find_player(name))
    return room


class TestEndGame:
    async def test_no_survivors(self, manager):
        room = _room({"alice": 5, "bob": 3}, eliminated=("alice", "bob"))
        over = manager._end_game(room)
        assert over.winners == []
        assert over.reason == ALL_ELIMINATED_REASON
        assert room.phase == RoomPhase.ENDED

    async def test_single_survivor(self, manager):
        room = _room({"alice": 5, "bob": 3}, eliminated=("alice",))
        over = manager._end_game(room)
        assert [w.username for w in over.winners] == ["Bob"]
        assert over.reason == LAST_STANDING_REASON

    async def test_highest_score_among_survivors(self, manager):
        room = _room({"alice": 5, "bob": 9, "carol": 20}, eliminated=("carol",))
        over = manager._end_game(room)
        assert [w.username for w in over.winners] == ["Bob"]
        assert over.reason == HIGHEST_SCORE_REASON
        assert room.current_player is None

    async def test_tied_survivors_share_the_win(self, manager):
        room = _room({"alice": 7, "bob": 7, "carol": 2})
        over = manager._end_game(room)
        assert [w.username for w in over.winners] == ["Alice", "Bob"]

    async def test_game_over_wire_shape(self, manager):
        data = manager._end_game(_room({"alice": 4}, eliminated=())).to_wire()
        assert data["type"] == "gameOver"
        assert data["roomId"] == "room-1"
        assert data["winners"] == [{"id": "alice", "username": "Alice", "score": 4}]
        assert data["players"][0]["isCurrentPlayer"] is False


class TestHousekeeping:
    async def test_ping(self, manager):
        conn = MockConnection()
        await manager.handle_ping(conn)
        assert conn.sent_messages == [{"type": "pong"}]

    async def test_shutdown_cancels_countdowns(self, manager):
        await start_game(manager)
        assert manager.countdown_count == 1
        manager.shutdown()
        assert not manager.is_countdown_running("room-1")

    async def test_room_lock_kept_while_a_task_waits(self, manager):
        async def waiter():
            async with manager._room_lock("room-1"):
                pass

        async with manager._room_lock("room-1"):
            task = asyncio.create_task(waiter())
            await asyncio.sleep(0)
            lock = manager._room_locks["room-1"]
        # released, but the waiter has not run yet
        manager._forget_idle_room("room-1")
        assert manager._room_locks.get("room-1") is lock

        await task
        manager._forget_idle_room("room-1")
        assert "room-1" not in manager._room_locks

    async def test_room_lock_released_on_error(self, manager):
        with pytest.raises(RuntimeError):
            async with manager._room_lock("room-1"):
                raise RuntimeError("boom")
        assert not manager._room_locks["room-1"].locked()
        manager._forget_idle_room("room-1")
        assert "room-1" not in manager._room_locks

    async def test_idle_room_lock_dropped_after_last_disconnect(self, manager):
        (alice,) = await join_players(manager, names=("alice",))
        assert "room-1" in manager._room_locks
        await manager.handle_disconnect(alice)
        assert "room-1" not in manager._room_locks
