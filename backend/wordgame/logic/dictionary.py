"""Dictionary predicates: is a submitted string a real word?

The state machine only depends on the WordValidator protocol. A word-list
implementation is used in production; the alphabetic one accepts any string
of letters and is meant for local development and tests.
"""

from __future__ import annotations

from pathlib import Path
from typing import Protocol

import structlog

logger = structlog.get_logger()


class WordValidator(Protocol):
    """Protocol for checking that a word exists."""

    def is_valid_word(self, word: str) -> bool: ...


class AlphabeticDictionary:
    """Accept any non-empty purely alphabetic word."""

    def is_valid_word(self, word: str) -> bool:
        return word.isascii() and word.isalpha()


class WordListDictionary:
    """Check words against an in-memory set loaded from a word list."""

    def __init__(self, words: set[str]) -> None:
        self._words = {w.strip().lower() for w in words if w.strip()}

    @classmethod
    def from_file(cls, path: Path | str) -> WordListDictionary:
        """Load a newline-separated word list (one word per line, '#' comments ignored)."""
        file_path = Path(path)
        with file_path.open(encoding="utf-8") as f:
            words = {line.strip() for line in f if line.strip() and not line.startswith("#")}
        logger.info("loaded dictionary", path=str(file_path), word_count=len(words))
        return cls(words)

    def __len__(self) -> int:
        return len(self._words)

    def is_valid_word(self, word: str) -> bool:
        return word.lower() in self._words
