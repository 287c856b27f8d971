from enum import StrEnum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator
from pydantic.alias_generators import to_camel

from wordgame.logic.enums import GameErrorCode, WordRejectionReason

# ASCII control character boundaries for input validation
_SPACE_ORD = 0x20
_DEL_ORD = 0x7F


class ClientMessageType(StrEnum):
    JOIN_ROOM = "joinRoom"
    START_GAME = "startGame"
    SUBMIT_WORD = "submitWord"
    PAUSE_GAME = "pauseGame"
    RESUME_GAME = "resumeGame"
    PING = "ping"


class ServerMessageType(StrEnum):
    ROOM_JOINED = "roomJoined"
    PLAYER_JOINED = "playerJoined"
    GAME_STARTED = "gameStarted"
    TIME_UPDATE = "timeUpdate"
    WORD_SUBMITTED = "wordSubmitted"
    WORD_REJECTED = "wordRejected"
    PLAYER_ELIMINATED = "playerEliminated"
    PLAYER_STATUS_UPDATE = "playerStatusUpdate"
    GAME_PAUSED = "gamePaused"
    GAME_RESUMED = "gameResumed"
    GAME_OVER = "gameOver"
    ERROR = "error"
    PONG = "pong"


class WireMessage(BaseModel):
    """Base for wire messages: camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


_ID_FIELD = Field(min_length=1, max_length=100)


def _reject_control_characters(v: str) -> str:
    if any(ord(c) < _SPACE_ORD or ord(c) == _DEL_ORD for c in v):
        raise ValueError("must not contain control characters")
    return v


# --- Client -> server ---


class JoinRoomMessage(WireMessage):
    type: Literal[ClientMessageType.JOIN_ROOM] = ClientMessageType.JOIN_ROOM
    lobby_id: str = _ID_FIELD
    user_id: str = _ID_FIELD
    username: str = Field(min_length=1, max_length=50)

    @field_validator("username")
    @classmethod
    def _validate_username(cls, v: str) -> str:
        return _reject_control_characters(v)


class StartGameMessage(WireMessage):
    type: Literal[ClientMessageType.START_GAME] = ClientMessageType.START_GAME
    lobby_id: str = _ID_FIELD
    user_id: str = _ID_FIELD


class SubmitWordMessage(WireMessage):
    type: Literal[ClientMessageType.SUBMIT_WORD] = ClientMessageType.SUBMIT_WORD
    room_id: str = _ID_FIELD
    user_id: str = _ID_FIELD
    word: str = Field(min_length=1, max_length=64)

    @field_validator("word")
    @classmethod
    def _validate_word(cls, v: str) -> str:
        return _reject_control_characters(v.strip())


class PauseGameMessage(WireMessage):
    type: Literal[ClientMessageType.PAUSE_GAME] = ClientMessageType.PAUSE_GAME
    room_id: str = _ID_FIELD


class ResumeGameMessage(WireMessage):
    type: Literal[ClientMessageType.RESUME_GAME] = ClientMessageType.RESUME_GAME
    room_id: str = _ID_FIELD
    user_id: str = _ID_FIELD


class PingMessage(WireMessage):
    type: Literal[ClientMessageType.PING] = ClientMessageType.PING


ClientMessage = Annotated[
    JoinRoomMessage | StartGameMessage | SubmitWordMessage | PauseGameMessage | ResumeGameMessage | PingMessage,
    Field(discriminator="type"),
]

_client_message_adapter = TypeAdapter(ClientMessage)


def parse_client_message(data: dict[str, Any]) -> ClientMessage:
    """Parse a raw dict into a typed ClientMessage."""
    return _client_message_adapter.validate_python(data)


# --- Server -> client ---


class PlayerSummary(WireMessage):
    """Roster entry shared by every roster-bearing notification."""

    id: str
    username: str
    score: int
    is_current_player: bool
    inactive: bool
    eliminated: bool
    position: int | None = None


class PlayerScore(WireMessage):
    id: str | None = None
    username: str
    score: int


class RoomJoinedMessage(WireMessage):
    type: Literal[ServerMessageType.ROOM_JOINED] = ServerMessageType.ROOM_JOINED
    room_id: str
    room_code: str
    players: list[PlayerSummary]


class PlayerJoinedMessage(WireMessage):
    type: Literal[ServerMessageType.PLAYER_JOINED] = ServerMessageType.PLAYER_JOINED
    room_id: str
    room_code: str
    players: list[PlayerSummary]


class GameStartedMessage(WireMessage):
    type: Literal[ServerMessageType.GAME_STARTED] = ServerMessageType.GAME_STARTED
    room_id: str
    room_code: str
    current_rule: str
    time_left: int
    min_word_length: int
    rules_completed: int
    current_player: str
    players: list[PlayerSummary]


class TimeUpdateMessage(WireMessage):
    type: Literal[ServerMessageType.TIME_UPDATE] = ServerMessageType.TIME_UPDATE
    room_id: str
    time_left: int
    current_player: str


class WordSubmittedMessage(WireMessage):
    type: Literal[ServerMessageType.WORD_SUBMITTED] = ServerMessageType.WORD_SUBMITTED
    room_id: str
    room_code: str
    word: str
    points: int
    player: PlayerScore
    players: list[PlayerSummary]
    current_rule: str | None
    rules_completed: int
    time_limit: int | None
    min_word_length: int | None
    current_player: str


class WordRejectedMessage(WireMessage):
    """Sent only to the player whose word was turned down."""

    type: Literal[ServerMessageType.WORD_REJECTED] = ServerMessageType.WORD_REJECTED
    code: WordRejectionReason
    reason: str


class PlayerEliminatedMessage(WireMessage):
    type: Literal[ServerMessageType.PLAYER_ELIMINATED] = ServerMessageType.PLAYER_ELIMINATED
    room_id: str
    username: str
    reason: str
    players: list[PlayerSummary]


class PlayerStatusUpdateMessage(WireMessage):
    type: Literal[ServerMessageType.PLAYER_STATUS_UPDATE] = ServerMessageType.PLAYER_STATUS_UPDATE
    room_id: str
    players: list[PlayerSummary]
    disconnected_player: str


class GamePausedMessage(WireMessage):
    type: Literal[ServerMessageType.GAME_PAUSED] = ServerMessageType.GAME_PAUSED
    room_id: str
    room_code: str
    reason: str = "Game paused by host"


class GameResumedMessage(WireMessage):
    type: Literal[ServerMessageType.GAME_RESUMED] = ServerMessageType.GAME_RESUMED
    room_id: str
    room_code: str
    time_left: int
    current_player: str


class GameOverMessage(WireMessage):
    type: Literal[ServerMessageType.GAME_OVER] = ServerMessageType.GAME_OVER
    room_id: str
    winners: list[PlayerScore]
    players: list[PlayerSummary]
    reason: str


class ErrorMessage(WireMessage):
    type: Literal[ServerMessageType.ERROR] = ServerMessageType.ERROR
    code: GameErrorCode
    message: str


class PongMessage(WireMessage):
    type: Literal[ServerMessageType.PONG] = ServerMessageType.PONG
