from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog
from pydantic import ValidationError

from wordgame.logic.enums import GameErrorCode
from wordgame.logic.exceptions import (
    GameRuleError,
    LobbyNotFoundError,
    RoomNotFoundError,
    RoomStoreError,
    WordRejectedError,
)
from wordgame.messaging.types import (
    ErrorMessage,
    JoinRoomMessage,
    PauseGameMessage,
    PingMessage,
    ResumeGameMessage,
    StartGameMessage,
    SubmitWordMessage,
    WordRejectedMessage,
    parse_client_message,
)

if TYPE_CHECKING:
    from wordgame.messaging.protocol import ConnectionProtocol
    from wordgame.messaging.types import ClientMessage
    from wordgame.session.manager import SessionManager

logger = structlog.get_logger()


class MessageRouter:
    """
    Routes incoming messages to the session manager.

    This is the error boundary for client actions: rejections, missing
    rooms, store failures and unexpected exceptions are all turned into a
    message for the acting connection only. Nothing raised while handling
    one message can take the connection or the process down.
    """

    def __init__(self, session_manager: SessionManager) -> None:
        self._session_manager = session_manager

    async def handle_message(
        self,
        connection: ConnectionProtocol,
        raw_message: dict[str, Any],
    ) -> None:
        try:
            message = parse_client_message(raw_message)
        except (ValidationError, KeyError, TypeError, ValueError) as e:
            logger.warning("invalid message", connection_id=connection.connection_id, error=str(e))
            await self._send_error(connection, GameErrorCode.INVALID_MESSAGE, str(e))
            return

        try:
            await self._dispatch(connection, message)
        except WordRejectedError as e:
            logger.info("word rejected", reason=e.reason.value)
            await connection.send_message(WordRejectedMessage(code=e.reason, reason=e.message).to_wire())
        except GameRuleError as e:
            logger.info("action rejected", error_code=e.code.value, error_message=e.message)
            await self._send_error(connection, e.code, e.message)
        except RoomNotFoundError:
            await self._send_error(connection, GameErrorCode.ROOM_NOT_FOUND, "Room not found")
        except LobbyNotFoundError:
            await self._send_error(connection, GameErrorCode.LOBBY_NOT_FOUND, "Lobby not found")
        except RoomStoreError:
            logger.exception("room store failure", message_type=message.type.value)
            await self._send_error(connection, GameErrorCode.STORE_UNAVAILABLE, "Game state is temporarily unavailable")
        except Exception:
            logger.exception("unexpected error handling message", message_type=message.type.value)
            await self._send_error(connection, GameErrorCode.ACTION_FAILED, "Failed to process request")

    async def _dispatch(self, connection: ConnectionProtocol, message: ClientMessage) -> None:
        if isinstance(message, JoinRoomMessage):
            structlog.contextvars.bind_contextvars(room_id=message.lobby_id, user_id=message.user_id)
            await self._session_manager.join_room(
                connection,
                lobby_id=message.lobby_id,
                player_id=message.user_id,
                username=message.username,
            )
        elif isinstance(message, StartGameMessage):
            structlog.contextvars.bind_contextvars(room_id=message.lobby_id, user_id=message.user_id)
            await self._session_manager.start_game(
                message.lobby_id,
                message.user_id,
                connection_id=connection.connection_id,
            )
        elif isinstance(message, SubmitWordMessage):
            structlog.contextvars.bind_contextvars(room_id=message.room_id, user_id=message.user_id)
            await self._session_manager.submit_word(
                message.room_id,
                message.user_id,
                message.word,
                connection_id=connection.connection_id,
            )
        elif isinstance(message, PauseGameMessage):
            structlog.contextvars.bind_contextvars(room_id=message.room_id)
            await self._session_manager.pause_game(message.room_id, connection_id=connection.connection_id)
        elif isinstance(message, ResumeGameMessage):
            structlog.contextvars.bind_contextvars(room_id=message.room_id, user_id=message.user_id)
            await self._session_manager.resume_game(
                message.room_id,
                message.user_id,
                connection_id=connection.connection_id,
            )
        elif isinstance(message, PingMessage):
            await self._session_manager.handle_ping(connection)

    async def _send_error(self, connection: ConnectionProtocol, code: GameErrorCode, message: str) -> None:
        await connection.send_message(ErrorMessage(code=code, message=message).to_wire())

    async def handle_connect(self, connection: ConnectionProtocol) -> None:
        self._session_manager.register_connection(connection)

    async def handle_disconnect(self, connection: ConnectionProtocol) -> None:
        try:
            await self._session_manager.handle_disconnect(connection)
        except Exception:
            logger.exception("unexpected error handling disconnect", connection_id=connection.connection_id)
