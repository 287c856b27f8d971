import random

import pytest

from wordgame.lobby.client import LobbyInfo, StaticLobbyClient
from wordgame.logic.dictionary import AlphabeticDictionary
from wordgame.logic.timer import TimeLimitPolicy
from wordgame.messaging.router import MessageRouter
from wordgame.session.manager import SessionManager
from wordgame.session.store import InMemoryRoomStore

# Long enough that no countdown fires during a state-machine test.
SLOW_TICK_SECONDS = 60.0
FAST_TICK_SECONDS = 0.01


@pytest.fixture
def store():
    return InMemoryRoomStore()


@pytest.fixture
def lobby_client():
    return StaticLobbyClient(default=LobbyInfo(max_players=4, status="pending"))


@pytest.fixture
async def manager(store, lobby_client):
    session_manager = SessionManager(
        store,
        lobby_client,
        AlphabeticDictionary(),
        tick_seconds=SLOW_TICK_SECONDS,
        rng=random.Random(7),
    )
    yield session_manager
    session_manager.shutdown()


@pytest.fixture
async def fast_manager(store, lobby_client):
    """Manager whose countdowns tick every few milliseconds from a two-second allowance."""
    session_manager = SessionManager(
        store,
        lobby_client,
        AlphabeticDictionary(),
        tick_seconds=FAST_TICK_SECONDS,
        policy=TimeLimitPolicy(base_seconds=2, floor_seconds=1),
        rng=random.Random(7),
    )
    yield session_manager
    session_manager.shutdown()


@pytest.fixture
def router(manager):
    return MessageRouter(manager)
