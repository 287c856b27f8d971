from __future__ import annotations

import contextlib
from typing import TYPE_CHECKING
from uuid import uuid4

import structlog
from starlette.websockets import WebSocket, WebSocketDisconnect

from wordgame.logic.enums import GameErrorCode
from wordgame.messaging.encoder import DecodeError, decode
from wordgame.messaging.protocol import ConnectionProtocol
from wordgame.messaging.types import ErrorMessage
from wordgame.server.rate_limit import ThrottlePolicy

if TYPE_CHECKING:
    from wordgame.messaging.router import MessageRouter

logger = structlog.get_logger()


class WebSocketConnection(ConnectionProtocol):
    def __init__(self, websocket: WebSocket, connection_id: str | None = None) -> None:
        self._websocket = websocket
        self._connection_id = connection_id or str(uuid4())

    @property
    def connection_id(self) -> str:
        return self._connection_id

    async def send_bytes(self, data: bytes) -> None:
        try:
            await self._websocket.send_bytes(data)
        except WebSocketDisconnect:
            raise ConnectionError("WebSocket already disconnected") from None

    async def receive_bytes(self) -> bytes:
        try:
            return await self._websocket.receive_bytes()
        except WebSocketDisconnect:
            raise ConnectionError("WebSocket already disconnected") from None

    async def close(self, code: int = 1000, reason: str = "") -> None:
        with contextlib.suppress(WebSocketDisconnect, RuntimeError):
            await self._websocket.close(code=code, reason=reason)


async def websocket_endpoint(
    websocket: WebSocket,
    router: MessageRouter,
    *,
    throttle: ThrottlePolicy | None = None,
    max_decode_errors: int = 5,
) -> None:
    """Serve one client until it disconnects.

    Frames beyond the throttle are answered with a rate_limited error and
    dropped. The socket is closed after max_decode_errors consecutive
    undecodable frames.
    """
    await websocket.accept()

    connection = WebSocketConnection(websocket)
    structlog.contextvars.bind_contextvars(connection_id=connection.connection_id)
    logger.info("websocket connected")
    await router.handle_connect(connection)

    bucket = (throttle or ThrottlePolicy()).new_bucket()
    decode_errors = 0

    try:
        while True:
            raw = await connection.receive_bytes()
            try:
                data = decode(raw)
            except DecodeError as e:
                decode_errors += 1
                logger.warning("decode error", error=str(e), strikes=decode_errors)
                await connection.send_message(
                    ErrorMessage(code=GameErrorCode.INVALID_MESSAGE, message=str(e)).to_wire(),
                )
                if decode_errors >= max_decode_errors:
                    logger.info("too many decode errors, disconnecting")
                    await connection.close(code=4004, reason="too_many_decode_errors")
                    return
                continue

            decode_errors = 0
            if not bucket.allow():
                retry_after = bucket.retry_after()
                logger.debug("message throttled", retry_after=retry_after)
                await connection.send_message(
                    ErrorMessage(
                        code=GameErrorCode.RATE_LIMITED,
                        message=f"Too many messages, retry in {retry_after:.1f}s",
                    ).to_wire(),
                )
                continue
            await router.handle_message(connection, data)
    except (WebSocketDisconnect, RuntimeError, ConnectionError):
        pass
    finally:
        logger.info("websocket disconnected")
        await router.handle_disconnect(connection)
        structlog.contextvars.clear_contextvars()
