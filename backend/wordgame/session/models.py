"""Persisted room state.

A GameRoom is the unit of persistence: every transition reads the whole
document, mutates it, and writes it back. Field names serialize in camelCase,
`usedWords` as a sorted list and timestamps as ISO-8601 strings.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_serializer, model_validator
from pydantic.alias_generators import to_camel

from wordgame.logic.enums import RoomPhase
from wordgame.logic.rules import Rule, resolve_rule

DEFAULT_MIN_WORD_LENGTH = 4


def utc_now() -> datetime:
    return datetime.now(UTC)


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Player(_CamelModel):
    """A player seated in a room.

    `id` is stable across reconnects; `connection_id` changes on every
    reconnect. `inactive` means disconnected but eligible to resume;
    `eliminated` is permanent for the current game.
    """

    id: str
    connection_id: str
    username: str
    score: int = Field(default=0, ge=0)
    is_current_player: bool = False
    inactive: bool = False
    eliminated: bool = False
    position: int | None = None  # 1-based elimination rank

    @property
    def is_active(self) -> bool:
        """Still in contention: neither eliminated nor disconnected."""
        return not self.eliminated and not self.inactive


def _upgrade_legacy_player(data: Any) -> Any:  # noqa: ANN401
    if isinstance(data, dict) and "socketId" in data and "connectionId" not in data:
        data = dict(data)
        data["connectionId"] = data.pop("socketId")
    return data


class GameRoom(_CamelModel):
    id: str
    players: list[Player] = Field(default_factory=list)  # join order == turn order
    current_player_index: int = 0
    phase: RoomPhase = RoomPhase.LOBBY
    current_rule: Rule | None = None
    current_rule_index: int | None = None
    min_word_length: int | None = None
    used_words: set[str] = Field(default_factory=set)
    time_limit: int | None = None
    rules_completed: int = 0
    last_active: datetime = Field(default_factory=utc_now)
    created_at: datetime = Field(default_factory=utc_now)

    @model_validator(mode="before")
    @classmethod
    def _upgrade_legacy_document(cls, data: Any) -> Any:  # noqa: ANN401
        """Fill defaults and upgrade documents written before phases and tagged rules existed.

        Legacy documents store the active rule as `{"rule": <description>}` and
        have no phase; a room with a rule is treated as in progress.
        """
        if not isinstance(data, dict):
            return data
        data = dict(data)
        for key in ("usedWords", "rulesCompleted"):
            if data.get(key) is None:
                data.pop(key, None)

        rule = data.get("currentRule")
        if "phase" not in data:
            data["phase"] = RoomPhase.IN_PROGRESS if rule else RoomPhase.LOBBY
        if isinstance(rule, dict) and "kind" not in rule and "rule" in rule:
            min_length = data.get("minWordLength") or DEFAULT_MIN_WORD_LENGTH
            data["currentRule"] = resolve_rule(rule["rule"], min_length)

        players = data.get("players")
        if isinstance(players, list):
            data["players"] = [_upgrade_legacy_player(p) for p in players]
        return data

    @field_serializer("used_words")
    def _serialize_used_words(self, used_words: set[str]) -> list[str]:
        return sorted(used_words)

    # --- Queries ---

    @property
    def host(self) -> Player | None:
        return self.players[0] if self.players else None

    @property
    def active_players(self) -> list[Player]:
        return [p for p in self.players if p.is_active]

    @property
    def surviving_players(self) -> list[Player]:
        """Players not eliminated, whether connected or not."""
        return [p for p in self.players if not p.eliminated]

    @property
    def current_player(self) -> Player | None:
        for player in self.players:
            if player.is_current_player:
                return player
        return None

    @property
    def in_progress(self) -> bool:
        return self.phase == RoomPhase.IN_PROGRESS

    def find_player(self, player_id: str) -> Player | None:
        for player in self.players:
            if player.id == player_id:
                return player
        return None

    def find_by_connection(self, connection_id: str) -> Player | None:
        for player in self.players:
            if player.connection_id == connection_id:
                return player
        return None

    def next_elimination_position(self) -> int:
        return sum(1 for p in self.players if p.eliminated) + 1

    # --- Mutations ---

    def eliminate(self, player: Player) -> None:
        """Permanently remove a player from contention for this game."""
        if player.eliminated:
            return
        player.position = self.next_elimination_position()
        player.eliminated = True
        player.is_current_player = False

    def set_current(self, index: int) -> None:
        for player in self.players:
            player.is_current_player = False
        self.current_player_index = index
        self.players[index].is_current_player = True

    def clear_current(self) -> None:
        for player in self.players:
            player.is_current_player = False

    def touch(self) -> None:
        self.last_active = utc_now()

    def to_document(self) -> str:
        """Serialize for the room store."""
        return self.model_dump_json(by_alias=True)

    @classmethod
    def from_document(cls, document: str | bytes) -> GameRoom:
        """Deserialize a room written by `to_document` (or by the legacy format)."""
        return cls.model_validate_json(document)
