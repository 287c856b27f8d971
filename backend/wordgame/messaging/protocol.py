"""Abstract connection protocol for MessagePack binary communication."""

from abc import ABC, abstractmethod
from typing import Any

from wordgame.messaging.encoder import decode, encode


class ConnectionProtocol(ABC):
    """
    Abstract interface for a client connection.

    Lets the session and routing logic run against fake connections in
    tests. A connection may belong to several rooms; the session manager
    tracks that membership, not the connection.
    """

    @property
    @abstractmethod
    def connection_id(self) -> str:
        """Unique identifier for this connection, fresh on every reconnect."""
        ...

    @abstractmethod
    async def send_bytes(self, data: bytes) -> None: ...

    @abstractmethod
    async def receive_bytes(self) -> bytes: ...

    @abstractmethod
    async def close(self, code: int = 1000, reason: str = "") -> None: ...

    async def send_message(self, data: dict[str, Any]) -> None:
        """
        Send a message to the client using MessagePack encoding.
        """
        await self.send_bytes(encode(data))

    async def receive_message(self) -> dict[str, Any]:
        """
        Receive a message from the client using MessagePack decoding.
        """
        raw = await self.receive_bytes()
        return decode(raw)
