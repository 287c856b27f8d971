import httpx

from wordgame.lobby.client import DEFAULT_MAX_PLAYERS, HttpLobbyClient, LobbyInfo, StaticLobbyClient


def _client(handler) -> HttpLobbyClient:
    return HttpLobbyClient("http://lobby.test/api/lobbies/", transport=httpx.MockTransport(handler))


class TestHttpLobbyClient:
    async def test_reads_data_envelope(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(str(request.url))
            return httpx.Response(200, json={"data": {"id": "l1", "maxPlayers": 6, "status": "pending", "name": "x"}})

        client = _client(handler)
        lobby = await client.get_lobby("l1")
        await client.aclose()

        assert seen == ["http://lobby.test/api/lobbies/l1"]
        assert lobby == LobbyInfo(id="l1", max_players=6, status="pending")
        assert lobby.joinable

    async def test_missing_fields_default(self):
        client = _client(lambda _request: httpx.Response(200, json={"data": {"id": "l1"}}))
        lobby = await client.get_lobby("l1")
        assert lobby.max_players == DEFAULT_MAX_PLAYERS
        assert lobby.joinable

    async def test_not_found(self):
        client = _client(lambda _request: httpx.Response(404, json={"error": "not found"}))
        assert await client.get_lobby("l1") is None

    async def test_empty_envelope(self):
        client = _client(lambda _request: httpx.Response(200, json={"data": None}))
        assert await client.get_lobby("l1") is None

    async def test_malformed_body(self):
        client = _client(lambda _request: httpx.Response(200, content=b"<html>"))
        assert await client.get_lobby("l1") is None

    async def test_transport_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        assert await _client(handler).get_lobby("l1") is None


class TestLobbyInfo:
    def test_closed_lobby_not_joinable(self):
        assert not LobbyInfo(status="in_progress").joinable
        assert LobbyInfo(status="active").joinable


class TestStaticLobbyClient:
    async def test_known_and_default(self):
        client = StaticLobbyClient({"a": LobbyInfo(max_players=2)}, default=LobbyInfo(max_players=9))
        assert (await client.get_lobby("a")).max_players == 2
        assert (await client.get_lobby("b")).max_players == 9

    async def test_unknown_without_default(self):
        assert await StaticLobbyClient().get_lobby("a") is None
