"""Shared broadcast utility for sending messages to room members."""

from __future__ import annotations

import contextlib
from collections.abc import Iterable
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from wordgame.messaging.protocol import ConnectionProtocol


async def broadcast_to_connections(
    connections: Iterable[ConnectionProtocol],
    message: dict[str, Any],
    exclude_connection_id: str | None = None,
) -> None:
    """Send a message to every connection, skipping one if excluded.

    The iterable is snapshotted first since a disconnect can mutate
    membership while we yield on send_message. Dead sockets are skipped.
    """
    for connection in list(connections):
        if connection.connection_id != exclude_connection_id:
            with contextlib.suppress(RuntimeError, OSError):
                await connection.send_message(message)
