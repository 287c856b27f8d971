"""Typed domain exceptions for the word game.

User-facing rejections use subclasses of GameRuleError so the session
layer can catch-and-convert them into error messages for the acting player
only. Missing rooms and lobbies have their own types, and store failures are
wrapped in RoomStoreError so callers never see backend-specific exceptions.
"""

from wordgame.logic.enums import GameErrorCode, WordRejectionReason


class GameRuleError(Exception):
    """Base exception for actions that are invalid in the current room state.

    Raised by the state machine when a player action violates game rules.
    State is never mutated before one of these is raised.
    """

    def __init__(self, code: GameErrorCode, message: str) -> None:
        self.code = code
        self.message = message
        super().__init__(message)


class WordRejectedError(GameRuleError):
    """A submitted word failed validation (length, duplicate, dictionary, or rule)."""

    def __init__(self, reason: WordRejectionReason, message: str) -> None:
        self.reason = reason
        super().__init__(GameErrorCode.WORD_REJECTED, message)


class RoomNotFoundError(Exception):
    """No room is stored under the requested identifier."""

    def __init__(self, room_id: str) -> None:
        self.room_id = room_id
        super().__init__(f"room {room_id} not found")


class LobbyNotFoundError(Exception):
    """The lobby service does not know the requested lobby."""

    def __init__(self, lobby_id: str) -> None:
        self.lobby_id = lobby_id
        super().__init__(f"lobby {lobby_id} not found")


class RoomStoreError(Exception):
    """The room store failed to read or write a room."""
