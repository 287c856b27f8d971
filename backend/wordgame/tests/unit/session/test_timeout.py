from unittest.mock import AsyncMock

from wordgame.logic.enums import RoomPhase
from wordgame.logic.exceptions import RoomStoreError
from wordgame.tests.helpers import assert_single_current, load, start_game, wait_until


async def _expire_turn(store, room_id: str = "room-1") -> None:
    room = await load(store, room_id)
    room.time_limit = 0
    await store.save(room)


class TestHandleTimeout:
    async def test_current_player_eliminated(self, manager, store):
        connections = await start_game(manager)
        await _expire_turn(store)

        await manager._handle_timeout("room-1")

        room = await load(store)
        alice = room.find_player("alice")
        assert alice.eliminated
        assert alice.position == 1
        assert room.current_player.id == "bob"
        assert room.time_limit == 10
        assert_single_current(room)

        types = [m["type"] for m in connections[1].sent_messages]
        assert types == ["playerEliminated", "timeUpdate"]
        eliminated = connections[1].last_message("playerEliminated")
        assert eliminated["username"] == "Alice"
        assert eliminated["reason"] == "Timed out"
        assert connections[1].last_message("timeUpdate")["currentPlayer"] == "Bob"
        assert manager.is_countdown_running("room-1")

    async def test_stale_timeout_ignored(self, manager, store):
        connections = await start_game(manager)

        await manager._handle_timeout("room-1")

        room = await load(store)
        assert room.current_player.id == "alice"
        assert not any(p.eliminated for p in room.players)
        assert connections[0].sent_messages == []

    async def test_timeout_after_game_over_ignored(self, manager, store):
        await start_game(manager)
        room = await load(store)
        room.phase = RoomPhase.ENDED
        room.time_limit = 0
        await store.save(room)

        await manager._handle_timeout("room-1")

        assert not (await load(store)).find_player("alice").eliminated

    async def test_last_opponent_timing_out_ends_game(self, manager, store):
        alice, bob = await start_game(manager, names=("alice", "bob"))
        await _expire_turn(store)

        await manager._handle_timeout("room-1")

        over = bob.last_message("gameOver")
        assert over["reason"] == "Last player standing wins!"
        assert over["winners"] == [{"id": "bob", "username": "Bob", "score": 0}]
        room = await load(store)
        assert room.phase == RoomPhase.ENDED
        assert room.current_player is None
        assert_single_current(room)
        assert not manager.is_countdown_running("room-1")

    async def test_store_failure_retries_countdown(self, manager, store):
        connections = await start_game(manager)
        await _expire_turn(store)
        manager.shutdown()
        store.save = AsyncMock(side_effect=RoomStoreError("down"))

        await manager._handle_timeout("room-1")

        assert manager.is_countdown_running("room-1")
        assert connections[0].sent_messages == []
        assert not (await load(store)).find_player("alice").eliminated


class TestCountdownEndToEnd:
    async def test_idle_players_time_out_in_turn(self, fast_manager, store):
        alice, bob = await start_game(fast_manager, names=("alice", "bob"))

        async def game_over() -> bool:
            return bob.last_message("gameOver") is not None

        await wait_until(game_over)

        assert [m["timeLeft"] for m in alice.messages_of_type("timeUpdate")][:2] == [1, 0]
        assert alice.last_message("playerEliminated")["username"] == "Alice"
        room = await load(store)
        assert room.phase == RoomPhase.ENDED
        assert room.find_player("alice").position == 1
        assert_single_current(room)
        assert not fast_manager.is_countdown_running("room-1")
