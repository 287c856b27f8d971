"""
String enum definitions for word game concepts.
"""

from enum import StrEnum


class RoomPhase(StrEnum):
    """State-machine phase of a game room."""

    LOBBY = "lobby"
    IN_PROGRESS = "in_progress"
    ENDED = "ended"


class RuleKind(StrEnum):
    """Kinds of word rules, in rotation order."""

    MIN_LENGTH = "min_length"
    CONTAINS_LETTER = "contains_letter"
    EXCLUDES_LETTER = "excludes_letter"
    STARTS_WITH_LETTER = "starts_with_letter"
    ENDS_WITH_LETTER = "ends_with_letter"
    ENDS_WITH_SUFFIX = "ends_with_suffix"
    STARTS_WITH_PREFIX = "starts_with_prefix"
    DOUBLE_LETTER_PAIRS = "double_letter_pairs"
    EXACT_LENGTH = "exact_length"
    CONSONANT_BOUNDARIES = "consonant_boundaries"
    VOWEL_BOUNDARIES = "vowel_boundaries"
    LETTER_EXACTLY_THRICE = "letter_exactly_thrice"
    PALINDROME = "palindrome"
    NO_REPEATED_LETTERS = "no_repeated_letters"
    THREE_VOWELS_THREE_CONSONANTS = "three_vowels_three_consonants"
    SAME_LETTER_THRICE = "same_letter_thrice"
    BALANCED_VOWELS_CONSONANTS = "balanced_vowels_consonants"


class WordRejectionReason(StrEnum):
    """Why a submitted word was turned down."""

    TOO_SHORT = "too_short"
    DUPLICATE = "duplicate"
    INVALID_WORD = "invalid_word"
    RULE_VIOLATION = "rule_violation"


class GameErrorCode(StrEnum):
    """Error codes sent to the acting player for rejected actions."""

    ROOM_NOT_FOUND = "room_not_found"
    LOBBY_NOT_FOUND = "lobby_not_found"
    LOBBY_NOT_JOINABLE = "lobby_not_joinable"
    ROOM_FULL = "room_full"
    GAME_ALREADY_STARTED = "game_already_started"
    GAME_NOT_IN_PROGRESS = "game_not_in_progress"
    NOT_HOST = "not_host"
    NOT_ENOUGH_PLAYERS = "not_enough_players"
    NOT_YOUR_TURN = "not_your_turn"
    NOT_IN_ROOM = "not_in_room"
    NOT_PAUSED = "not_paused"
    INVALID_GAME_STATE = "invalid_game_state"
    WORD_REJECTED = "word_rejected"
    STORE_UNAVAILABLE = "store_unavailable"
    INVALID_MESSAGE = "invalid_message"
    RATE_LIMITED = "rate_limited"
    ACTION_FAILED = "action_failed"
