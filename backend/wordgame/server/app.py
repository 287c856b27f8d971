from __future__ import annotations

import asyncio
import contextlib
from typing import TYPE_CHECKING

import structlog
from starlette.applications import Starlette
from starlette.middleware.cors import CORSMiddleware
from starlette.responses import JSONResponse
from starlette.routing import Route, WebSocketRoute

from shared.build_info import build_info
from shared.db import Database
from shared.logging import setup_logging
from wordgame.lobby.client import HttpLobbyClient
from wordgame.logic.dictionary import AlphabeticDictionary, WordListDictionary
from wordgame.logic.exceptions import RoomStoreError
from wordgame.messaging.router import MessageRouter
from wordgame.server.rate_limit import ThrottlePolicy
from wordgame.server.settings import WordGameServerSettings
from wordgame.server.websocket import websocket_endpoint
from wordgame.session.manager import SessionManager
from wordgame.session.sqlite_store import SqliteRoomStore

if TYPE_CHECKING:
    from starlette.requests import Request
    from starlette.websockets import WebSocket

    from wordgame.lobby.client import LobbyClient
    from wordgame.logic.dictionary import WordValidator

logger = structlog.get_logger()


async def health(_request: Request) -> JSONResponse:
    return JSONResponse({"status": "ok", **build_info()})


async def status(request: Request) -> JSONResponse:
    session_manager: SessionManager = request.app.state.session_manager
    return JSONResponse(
        {
            "status": "ok",
            **build_info(),
            "connected_rooms": session_manager.room_count,
            "active_countdowns": session_manager.countdown_count,
        },
    )


async def reap_expired_rooms(session_manager: SessionManager, interval_seconds: float) -> None:
    """Periodically delete rooms past their retention window."""
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            await session_manager.purge_expired_rooms()
        except RoomStoreError:
            logger.exception("failed to purge expired rooms")


def _build_dictionary(settings: WordGameServerSettings) -> WordValidator:
    if settings.dictionary_path:
        return WordListDictionary.from_file(settings.dictionary_path)
    logger.warning("no dictionary configured, accepting any alphabetic word")
    return AlphabeticDictionary()


def create_app(
    settings: WordGameServerSettings | None = None,
    session_manager: SessionManager | None = None,
    message_router: MessageRouter | None = None,
    lobby_client: LobbyClient | None = None,
) -> Starlette:
    if settings is None:  # pragma: no cover
        settings = WordGameServerSettings()

    # When the app builds its own SessionManager, it owns the DB and lobby client lifecycles.
    owned_db: Database | None = None
    owned_lobby_client: LobbyClient | None = None

    if session_manager is None:
        db = Database(settings.database_path)
        db.connect()
        owned_db = db
        if lobby_client is None:
            lobby_client = owned_lobby_client = HttpLobbyClient(
                settings.lobby_api_url,
                timeout=settings.lobby_timeout_seconds,
            )
        session_manager = SessionManager(
            SqliteRoomStore(db, retention_seconds=settings.room_retention_seconds),
            lobby_client,
            _build_dictionary(settings),
            tick_seconds=settings.tick_seconds,
        )

    if message_router is None:
        message_router = MessageRouter(session_manager)

    throttle = ThrottlePolicy.from_settings(settings)

    async def ws_endpoint(websocket: WebSocket) -> None:
        await websocket_endpoint(
            websocket,
            message_router,
            throttle=throttle,
            max_decode_errors=settings.max_decode_errors,
        )

    routes = [
        Route("/health", health, methods=["GET"]),
        Route("/status", status, methods=["GET"]),
        WebSocketRoute("/ws", ws_endpoint),
    ]

    @contextlib.asynccontextmanager
    async def lifespan(_app: Starlette):  # noqa: ANN202
        reaper = asyncio.create_task(reap_expired_rooms(session_manager, settings.reaper_interval_seconds))
        try:
            yield
        finally:
            reaper.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await reaper
            session_manager.shutdown()
            if owned_lobby_client is not None:
                await owned_lobby_client.aclose()
            if owned_db is not None:
                owned_db.close()

    app = Starlette(routes=routes, lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,  # type: ignore[arg-type]
        allow_origins=settings.cors_origins,
        allow_methods=["GET"],
        allow_headers=["Content-Type"],
    )
    app.state.settings = settings
    app.state.session_manager = session_manager

    logger.info("word game server ready")
    return app


def get_app() -> Starlette:  # pragma: no cover
    """ASGI application factory for production use (e.g., uvicorn --factory)."""
    settings = WordGameServerSettings()
    setup_logging(log_dir=settings.log_dir)
    return create_app(settings=settings)
