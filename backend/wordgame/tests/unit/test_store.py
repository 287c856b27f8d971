import pytest

from shared.db import Database
from wordgame.logic.exceptions import RoomStoreError
from wordgame.session.models import GameRoom, Player
from wordgame.session.sqlite_store import SqliteRoomStore
from wordgame.session.store import InMemoryRoomStore


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


def _room(room_id: str = "room-1") -> GameRoom:
    return GameRoom(id=room_id, players=[Player(id="alice", connection_id="c1", username="Alice")])


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def db():
    database = Database(":memory:")
    database.connect()
    yield database
    database.close()


@pytest.fixture(params=["memory", "sqlite"])
def room_store(request, clock, db):
    if request.param == "memory":
        return InMemoryRoomStore(retention_seconds=60, clock=clock)
    return SqliteRoomStore(db, retention_seconds=60, clock=clock)


class TestRoomStore:
    async def test_missing_room(self, room_store):
        assert await room_store.get("nope") is None

    async def test_save_and_get(self, room_store):
        await room_store.save(_room())
        loaded = await room_store.get("room-1")
        assert loaded.players[0].username == "Alice"

    async def test_reads_are_copies(self, room_store):
        await room_store.save(_room())
        first = await room_store.get("room-1")
        first.players[0].score = 99
        second = await room_store.get("room-1")
        assert second.players[0].score == 0

    async def test_save_overwrites(self, room_store):
        room = _room()
        await room_store.save(room)
        room.rules_completed = 3
        await room_store.save(room)
        assert (await room_store.get("room-1")).rules_completed == 3

    async def test_expires_after_retention(self, room_store, clock):
        await room_store.save(_room())
        clock.now += 61
        assert await room_store.get("room-1") is None

    async def test_write_extends_retention(self, room_store, clock):
        room = _room()
        await room_store.save(room)
        clock.now += 50
        await room_store.save(room)
        clock.now += 50
        assert await room_store.get("room-1") is not None

    async def test_purge_expired(self, room_store, clock):
        await room_store.save(_room("old"))
        clock.now += 30
        await room_store.save(_room("new"))
        clock.now += 40

        assert await room_store.purge_expired() == 1
        assert await room_store.get("new") is not None
        assert await room_store.purge_expired() == 0


class TestInMemoryRoomStore:
    async def test_corrupt_document_raises_store_error(self, clock):
        store = InMemoryRoomStore(clock=clock)
        store._documents["room-1"] = ("{not json", clock.now + 60)
        with pytest.raises(RoomStoreError):
            await store.get("room-1")


class TestSqliteRoomStore:
    async def test_corrupt_document_raises_store_error(self, db, clock):
        store = SqliteRoomStore(db, clock=clock)
        db.connection.execute(
            "INSERT INTO rooms (id, last_active, expires_at, data) VALUES (?, ?, ?, ?)",
            ("room-1", "2024-01-01T00:00:00+00:00", clock.now + 60, '{"players": "nope"}'),
        )
        with pytest.raises(RoomStoreError):
            await store.get("room-1")

    async def test_closed_database_raises_store_error(self, clock):
        database = Database(":memory:")
        store = SqliteRoomStore(database, clock=clock)
        with pytest.raises(RoomStoreError):
            await store.save(_room())
        with pytest.raises(RoomStoreError):
            await store.get("room-1")

    async def test_persists_across_stores(self, tmp_path, clock):
        path = tmp_path / "rooms.db"
        first = Database(path)
        first.connect()
        await SqliteRoomStore(first, clock=clock).save(_room())
        first.close()

        second = Database(path)
        second.connect()
        try:
            assert (await SqliteRoomStore(second, clock=clock).get("room-1")) is not None
        finally:
            second.close()
