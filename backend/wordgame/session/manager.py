"""Room state machine: join, start, submit, pause, resume, disconnect and timeouts.

Every mutation of a room runs under that room's lock and follows the same
shape: load the room, validate, mutate in memory, persist, then touch the
countdown and broadcast. A failed check raises before anything is written,
and a failed write raises before any timer or broadcast side effect, so the
acting player sees an error and the room is left as it was.
"""

from __future__ import annotations

import asyncio
import contextlib
from typing import TYPE_CHECKING

import structlog

from wordgame.logic.enums import GameErrorCode, RoomPhase, WordRejectionReason
from wordgame.logic.exceptions import (
    GameRuleError,
    LobbyNotFoundError,
    RoomNotFoundError,
    RoomStoreError,
    WordRejectedError,
)
from wordgame.logic.rules import next_rule, rule_at
from wordgame.logic.scoring import score_word
from wordgame.logic.timer import DEFAULT_TIME_LIMIT_POLICY, TimeLimitPolicy
from wordgame.messaging.types import (
    GameOverMessage,
    GamePausedMessage,
    GameResumedMessage,
    GameStartedMessage,
    PlayerEliminatedMessage,
    PlayerJoinedMessage,
    PlayerScore,
    PlayerStatusUpdateMessage,
    PlayerSummary,
    PongMessage,
    RoomJoinedMessage,
    TimeUpdateMessage,
    WordSubmittedMessage,
)
from wordgame.session.broadcast import broadcast_to_connections
from wordgame.session.models import DEFAULT_MIN_WORD_LENGTH, GameRoom, Player
from wordgame.session.timer_manager import TimerManager

if TYPE_CHECKING:
    import random
    from collections.abc import AsyncIterator

    from wordgame.lobby.client import LobbyClient
    from wordgame.logic.dictionary import WordValidator
    from wordgame.logic.rules import Rule
    from wordgame.messaging.protocol import ConnectionProtocol
    from wordgame.messaging.types import WireMessage
    from wordgame.session.store import RoomStore

logger = structlog.get_logger()

TIMEOUT_REASON = "Timed out"
ALL_ELIMINATED_REASON = "All players have been eliminated."
LAST_STANDING_REASON = "Last player standing wins!"
HIGHEST_SCORE_REASON = "Game ended with multiple players - highest score wins"


def room_code(room_id: str) -> str:
    """Short human-friendly code shown to players."""
    return room_id[:6].upper()


def _roster(room: GameRoom) -> list[PlayerSummary]:
    return [PlayerSummary.model_validate(p.model_dump()) for p in room.players]


def _current_username(room: GameRoom) -> str:
    player = room.current_player
    return player.username if player is not None else ""


class SessionManager:
    def __init__(
        self,
        store: RoomStore,
        lobby_client: LobbyClient,
        dictionary: WordValidator,
        *,
        tick_seconds: float = 1.0,
        policy: TimeLimitPolicy = DEFAULT_TIME_LIMIT_POLICY,
        rng: random.Random | None = None,
    ) -> None:
        self._store = store
        self._lobby_client = lobby_client
        self._dictionary = dictionary
        self._policy = policy
        self._rng = rng
        self._connections: dict[str, ConnectionProtocol] = {}
        self._room_members: dict[str, set[str]] = {}  # room_id -> connection ids
        self._memberships: dict[str, set[str]] = {}  # connection_id -> room ids
        self._room_locks: dict[str, asyncio.Lock] = {}  # room_id -> Lock
        self._lock_users: dict[str, int] = {}  # room_id -> tasks holding or waiting on the lock
        self._timer_manager = TimerManager(
            store,
            on_tick=self._broadcast_time_update,
            on_timeout=self._handle_timeout,
            lock_for=self._room_lock,
            tick_seconds=tick_seconds,
            policy=policy,
        )

    # --- Bookkeeping ---

    @property
    def room_count(self) -> int:
        """Rooms with at least one connected member."""
        return len(self._room_members)

    @property
    def countdown_count(self) -> int:
        return self._timer_manager.active_count

    def is_countdown_running(self, room_id: str) -> bool:
        return self._timer_manager.is_running(room_id)

    def rooms_for(self, connection_id: str) -> set[str]:
        return set(self._memberships.get(connection_id, ()))

    def _get_room_lock(self, room_id: str) -> asyncio.Lock:
        lock = self._room_locks.get(room_id)
        if lock is None:
            lock = self._room_locks[room_id] = asyncio.Lock()
        return lock

    @contextlib.asynccontextmanager
    async def _room_lock(self, room_id: str) -> AsyncIterator[None]:
        """Hold the room's lock, counting every task that holds or waits for it."""
        self._lock_users[room_id] = self._lock_users.get(room_id, 0) + 1
        try:
            async with self._get_room_lock(room_id):
                yield
        finally:
            remaining = self._lock_users[room_id] - 1
            if remaining:
                self._lock_users[room_id] = remaining
            else:
                del self._lock_users[room_id]

    def register_connection(self, connection: ConnectionProtocol) -> None:
        self._connections[connection.connection_id] = connection

    def unregister_connection(self, connection: ConnectionProtocol) -> None:
        self._connections.pop(connection.connection_id, None)
        for room_id in self._memberships.pop(connection.connection_id, set()):
            members = self._room_members.get(room_id)
            if members is None:
                continue
            members.discard(connection.connection_id)
            if not members:
                del self._room_members[room_id]
                self._forget_idle_room(room_id)

    def _attach(self, connection: ConnectionProtocol, room_id: str) -> None:
        self._connections.setdefault(connection.connection_id, connection)
        self._room_members.setdefault(room_id, set()).add(connection.connection_id)
        self._memberships.setdefault(connection.connection_id, set()).add(room_id)

    def _forget_idle_room(self, room_id: str) -> None:
        """Drop the lock of a room once no task uses it and no countdown runs."""
        if room_id in self._lock_users or self._timer_manager.is_running(room_id):
            return
        self._room_locks.pop(room_id, None)

    @staticmethod
    def _require_seat(room: GameRoom, player_id: str, connection_id: str | None) -> None:
        """Reject actions claiming a player id that this connection is not seated as."""
        if connection_id is None:
            return
        player = room.find_player(player_id)
        if player is None or player.connection_id != connection_id:
            raise GameRuleError(GameErrorCode.NOT_IN_ROOM, "You are not seated in this room")

    def shutdown(self) -> None:
        self._timer_manager.cancel_all()

    async def purge_expired_rooms(self) -> int:
        return await self._store.purge_expired()

    # --- Broadcast helpers ---

    async def _broadcast(self, room_id: str, message: WireMessage) -> None:
        connections = [
            self._connections[cid] for cid in self._room_members.get(room_id, ()) if cid in self._connections
        ]
        await broadcast_to_connections(connections, message.to_wire())

    async def _broadcast_time_update(self, room: GameRoom) -> None:
        await self._broadcast(room.id, self._time_update(room))

    def _time_update(self, room: GameRoom) -> TimeUpdateMessage:
        return TimeUpdateMessage(
            room_id=room.id,
            time_left=self._time_left(room),
            current_player=_current_username(room),
        )

    def _time_left(self, room: GameRoom) -> int:
        if room.time_limit is None:
            return self._policy.time_limit(room.rules_completed)
        return room.time_limit

    # --- Store helpers ---

    async def _load_room(self, room_id: str) -> GameRoom:
        room = await self._store.get(room_id)
        if room is None:
            raise RoomNotFoundError(room_id)
        return room

    async def _save(self, room: GameRoom) -> None:
        room.touch()
        await self._store.save(room)

    def _sync_countdown(self, room: GameRoom) -> None:
        """Restart the countdown for a live turn, stop it once the game is over."""
        if room.in_progress:
            self._timer_manager.start(room.id)
        else:
            self._timer_manager.cancel(room.id)

    # --- Join / Start ---

    async def join_room(
        self,
        connection: ConnectionProtocol,
        lobby_id: str,
        player_id: str,
        username: str,
    ) -> None:
        """Join a lobby's room, creating it on first join.

        A player id already seated in the room reconnects instead: the new
        connection replaces the old one and the player is marked active
        again, with score, turn and elimination untouched.
        """
        lobby = await self._lobby_client.get_lobby(lobby_id)
        if lobby is None:
            raise LobbyNotFoundError(lobby_id)
        if not lobby.joinable:
            raise GameRuleError(GameErrorCode.LOBBY_NOT_JOINABLE, "Lobby is not joinable")

        async with self._room_lock(lobby_id):
            room = await self._store.get(lobby_id)
            if room is None:
                room = GameRoom(id=lobby_id, time_limit=self._policy.time_limit(0))

            player = room.find_player(player_id)
            if player is not None:
                player.connection_id = connection.connection_id
                player.inactive = False
                event = "player reconnected"
            else:
                if len(room.players) >= lobby.max_players:
                    raise GameRuleError(GameErrorCode.ROOM_FULL, "Lobby is full")
                if room.phase != RoomPhase.LOBBY:
                    raise GameRuleError(GameErrorCode.GAME_ALREADY_STARTED, "Game already started")
                room.players.append(Player(id=player_id, connection_id=connection.connection_id, username=username))
                event = "player joined"

            await self._save(room)
            self._attach(connection, room.id)
            logger.info(event, room_id=room.id, player_id=player_id, players=len(room.players))

            roster = _roster(room)
            code = room_code(room.id)
            await connection.send_message(RoomJoinedMessage(room_id=room.id, room_code=code, players=roster).to_wire())
            await self._broadcast(room.id, PlayerJoinedMessage(room_id=room.id, room_code=code, players=roster))

    async def start_game(self, lobby_id: str, player_id: str, *, connection_id: str | None = None) -> None:
        """Reset the room into a fresh game. Host only, from the lobby phase only."""
        if await self._lobby_client.get_lobby(lobby_id) is None:
            raise LobbyNotFoundError(lobby_id)

        async with self._room_lock(lobby_id):
            room = await self._load_room(lobby_id)
            self._require_seat(room, player_id, connection_id)
            if room.phase != RoomPhase.LOBBY:
                raise GameRuleError(GameErrorCode.GAME_ALREADY_STARTED, "Game already started")
            if room.host is None or room.host.id != player_id:
                raise GameRuleError(GameErrorCode.NOT_HOST, "Only the host can start the game")
            first_index = next((i for i, p in enumerate(room.players) if not p.inactive), None)
            if first_index is None:
                raise GameRuleError(GameErrorCode.NOT_ENOUGH_PLAYERS, "Not enough players to start the game")

            for player in room.players:
                player.score = 0
                player.eliminated = False
                player.position = None
            room.phase = RoomPhase.IN_PROGRESS
            room.min_word_length = DEFAULT_MIN_WORD_LENGTH
            room.current_rule_index = 0
            room.current_rule = rule_at(0, DEFAULT_MIN_WORD_LENGTH, self._rng)
            room.used_words = set()
            room.rules_completed = 0
            room.time_limit = self._policy.time_limit(0)
            room.set_current(first_index)

            await self._save(room)
            self._timer_manager.start(room.id)
            logger.info("game started", room_id=room.id, players=len(room.players))

            await self._broadcast(
                room.id,
                GameStartedMessage(
                    room_id=room.id,
                    room_code=room_code(room.id),
                    current_rule=room.current_rule.description,
                    time_left=room.time_limit,
                    min_word_length=room.min_word_length,
                    rules_completed=room.rules_completed,
                    current_player=_current_username(room),
                    players=_roster(room),
                ),
            )

    # --- Turns ---

    def _check_word(self, room: GameRoom, rule: Rule, word: str) -> None:
        """Raise WordRejectedError for the first check the word fails."""
        min_length = room.min_word_length or DEFAULT_MIN_WORD_LENGTH
        if len(word) < min_length:
            raise WordRejectedError(WordRejectionReason.TOO_SHORT, f"Word must be at least {min_length} letters long")
        if word.lower() in room.used_words:
            raise WordRejectedError(WordRejectionReason.DUPLICATE, "This word was already used in this game")
        if not self._dictionary.is_valid_word(word):
            raise WordRejectedError(WordRejectionReason.INVALID_WORD, "Not a valid word")
        if not rule.matches(word):
            raise WordRejectedError(
                WordRejectionReason.RULE_VIOLATION,
                f"Word does not follow the rule: {rule.description}",
            )

    async def submit_word(
        self,
        room_id: str,
        player_id: str,
        word: str,
        *,
        connection_id: str | None = None,
    ) -> None:
        async with self._room_lock(room_id):
            room = await self._load_room(room_id)
            self._require_seat(room, player_id, connection_id)
            if not room.in_progress:
                raise GameRuleError(GameErrorCode.GAME_NOT_IN_PROGRESS, "Game not in progress")
            player = room.current_player
            if player is None or player.id != player_id:
                raise GameRuleError(GameErrorCode.NOT_YOUR_TURN, "Not your turn")
            rule = room.current_rule
            if rule is None:
                raise GameRuleError(GameErrorCode.INVALID_GAME_STATE, "Invalid game state. Please restart the game.")
            self._check_word(room, rule, word)

            points = score_word(word)
            room.used_words.add(word.lower())
            player.score += points
            room.rules_completed += 1
            room.current_rule_index, room.current_rule = next_rule(
                room.current_rule_index,
                room.min_word_length or DEFAULT_MIN_WORD_LENGTH,
                self._rng,
            )
            followup = self._advance_turn(room)

            await self._save(room)
            self._sync_countdown(room)
            logger.info("word accepted", room_id=room.id, player_id=player.id, points=points)

            await self._broadcast(
                room.id,
                WordSubmittedMessage(
                    room_id=room.id,
                    room_code=room_code(room.id),
                    word=word,
                    points=points,
                    player=PlayerScore(id=player.id, username=player.username, score=player.score),
                    players=_roster(room),
                    current_rule=room.current_rule.description if room.current_rule else None,
                    rules_completed=room.rules_completed,
                    time_limit=room.time_limit,
                    min_word_length=room.min_word_length,
                    current_player=_current_username(room),
                ),
            )
            await self._broadcast(room.id, followup)

    def _advance_turn(self, room: GameRoom) -> WireMessage:
        """Hand the turn to the next active player, or end the game.

        Mutates the room in place and returns the notification describing
        the outcome. The caller persists the room and syncs the countdown.
        """
        count = len(room.players)
        next_index = None
        for offset in range(1, count + 1):
            index = (room.current_player_index + offset) % count
            if room.players[index].is_active:
                next_index = index
                break

        if next_index is None or len(room.active_players) == 1:
            return self._end_game(room)

        room.set_current(next_index)
        room.time_limit = self._policy.time_limit(room.rules_completed)
        return self._time_update(room)

    def _end_game(self, room: GameRoom) -> GameOverMessage:
        """Finish the game in place and return its result."""
        room.phase = RoomPhase.ENDED
        room.clear_current()

        survivors = room.surviving_players
        if not survivors:
            winners: list[Player] = []
            reason = ALL_ELIMINATED_REASON
        elif len(survivors) == 1:
            winners = survivors
            reason = LAST_STANDING_REASON
        else:
            top_score = max(p.score for p in survivors)
            winners = [p for p in survivors if p.score == top_score]
            reason = HIGHEST_SCORE_REASON

        logger.info("game ended", room_id=room.id, winners=[p.username for p in winners], reason=reason)
        return GameOverMessage(
            room_id=room.id,
            winners=[PlayerScore(id=p.id, username=p.username, score=p.score) for p in winners],
            players=_roster(room),
            reason=reason,
        )

    async def _handle_timeout(self, room_id: str) -> None:
        """Eliminate the player whose countdown ran out, then move the turn on."""
        async with self._room_lock(room_id):
            try:
                room = await self._store.get(room_id)
            except RoomStoreError:
                logger.exception("failed to load room on timeout", room_id=room_id)
                self._timer_manager.start(room_id)
                return
            # a submission or disconnect may have moved the turn on while we waited for the lock
            if room is None or not room.in_progress or room.time_limit is None or room.time_limit > 0:
                logger.debug("stale timeout ignored", room_id=room_id)
                return
            player = room.current_player
            if player is None:
                return

            room.eliminate(player)
            eliminated = PlayerEliminatedMessage(
                room_id=room.id,
                username=player.username,
                reason=TIMEOUT_REASON,
                players=_roster(room),
            )
            followup = self._advance_turn(room)

            try:
                await self._save(room)
            except RoomStoreError:
                logger.exception("failed to save timeout", room_id=room_id)
                self._timer_manager.start(room_id)
                return
            self._sync_countdown(room)
            logger.info("player timed out", room_id=room.id, player_id=player.id, position=player.position)

            await self._broadcast(room.id, eliminated)
            await self._broadcast(room.id, followup)

    # --- Pause / Resume ---

    async def pause_game(self, room_id: str, *, connection_id: str | None = None) -> None:
        """Stop the countdown. Nothing is persisted beyond the activity timestamp."""
        async with self._room_lock(room_id):
            room = await self._load_room(room_id)
            if connection_id is not None and room.find_by_connection(connection_id) is None:
                raise GameRuleError(GameErrorCode.NOT_IN_ROOM, "You are not seated in this room")
            if not room.in_progress:
                raise GameRuleError(GameErrorCode.GAME_NOT_IN_PROGRESS, "Game not in progress")
            await self._save(room)
            self._timer_manager.cancel(room.id)
            logger.info("game paused", room_id=room.id)
            await self._broadcast(room.id, GamePausedMessage(room_id=room.id, room_code=room_code(room.id)))

    async def resume_game(self, room_id: str, player_id: str, *, connection_id: str | None = None) -> None:
        """Restart a paused countdown from the stored time limit. Host only."""
        async with self._room_lock(room_id):
            room = await self._load_room(room_id)
            self._require_seat(room, player_id, connection_id)
            if not room.in_progress:
                raise GameRuleError(GameErrorCode.GAME_NOT_IN_PROGRESS, "Game not in progress")
            if room.host is None or room.host.id != player_id:
                raise GameRuleError(GameErrorCode.NOT_HOST, "Only the host can resume the game")
            if self._timer_manager.is_running(room.id):
                raise GameRuleError(GameErrorCode.NOT_PAUSED, "Game is not paused")

            await self._save(room)
            self._timer_manager.start(room.id)
            logger.info("game resumed", room_id=room.id, time_left=self._time_left(room))

            await self._broadcast(
                room.id,
                GameResumedMessage(
                    room_id=room.id,
                    room_code=room_code(room.id),
                    time_left=self._time_left(room),
                    current_player=_current_username(room),
                ),
            )
            await self._broadcast(room.id, self._time_update(room))

    # --- Disconnect / Ping ---

    async def handle_disconnect(self, connection: ConnectionProtocol) -> None:
        """Mark the connection's player inactive in every room it joined.

        During a game a disconnect counts as an elimination. Store failures
        are logged per room so one bad room does not block the others.
        """
        room_ids = sorted(self._memberships.get(connection.connection_id, ()))
        self.unregister_connection(connection)
        for room_id in room_ids:
            try:
                await self._disconnect_from_room(room_id, connection.connection_id)
            except RoomStoreError:
                logger.exception("failed to record disconnect", room_id=room_id)

    async def _disconnect_from_room(self, room_id: str, connection_id: str) -> None:
        async with self._room_lock(room_id):
            room = await self._store.get(room_id)
            if room is None:
                return
            player = room.find_by_connection(connection_id)
            if player is None:
                return

            held_turn = player.is_current_player
            player.inactive = True
            followup: WireMessage | None = None
            if room.in_progress:
                room.eliminate(player)
                if held_turn:
                    followup = self._advance_turn(room)
                elif not room.active_players:
                    followup = self._end_game(room)

            await self._save(room)
            if followup is not None:
                self._sync_countdown(room)
            logger.info("player disconnected", room_id=room.id, player_id=player.id, eliminated=player.eliminated)

            await self._broadcast(
                room.id,
                PlayerStatusUpdateMessage(room_id=room.id, players=_roster(room), disconnected_player=player.username),
            )
            if followup is not None:
                await self._broadcast(room.id, followup)

        if room_id not in self._room_members:
            self._forget_idle_room(room_id)

    async def handle_ping(self, connection: ConnectionProtocol) -> None:
        await connection.send_message(PongMessage().to_wire())
