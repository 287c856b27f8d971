"""
Word rule generation and evaluation.

Rules are tagged variants: a kind plus the parameters it needs (minimum
length, seed letter, literal affix). A rule renders its own description and
evaluates its own predicate, so the whole rule survives a store round-trip.
The rotation order is fixed; selection advances by index and reseeds the
letter every time.
"""

from __future__ import annotations

import random
import re
import string
from collections import Counter
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, computed_field
from pydantic.alias_generators import to_camel

from wordgame.logic.enums import RuleKind

if TYPE_CHECKING:
    from collections.abc import Callable

VOWELS = frozenset("aeiou")
CONSONANTS = frozenset("bcdfghjklmnpqrstvwxyz")

SUFFIX_LITERAL = "tion"
PREFIX_LITERAL = "co"

_DOUBLE_LETTER_RE = re.compile(r"([a-z])\1")
# letter quoted in a rendered description, e.g. "the letter 'k'"
_QUOTED_LETTER_RE = re.compile(r"'([a-z])'", re.IGNORECASE)

_LENGTH_TAIL = "and be at least {min_length} characters long"

_DESCRIPTIONS: dict[RuleKind, str] = {
    RuleKind.MIN_LENGTH: "Word must be at least {min_length} characters!",
    RuleKind.CONTAINS_LETTER: "Word must contain the letter '{letter}' " + _LENGTH_TAIL,
    RuleKind.EXCLUDES_LETTER: "Word must NOT contain the letter '{letter}' " + _LENGTH_TAIL,
    RuleKind.STARTS_WITH_LETTER: "Word must start with the letter '{letter}' " + _LENGTH_TAIL,
    RuleKind.ENDS_WITH_LETTER: "Word must end with the letter '{letter}' " + _LENGTH_TAIL,
    RuleKind.ENDS_WITH_SUFFIX: "Word must end with '{affix}' " + _LENGTH_TAIL,
    RuleKind.STARTS_WITH_PREFIX: "Word must start with '{affix}' " + _LENGTH_TAIL,
    RuleKind.DOUBLE_LETTER_PAIRS: "Word must contain at least two pairs of double letters " + _LENGTH_TAIL,
    RuleKind.EXACT_LENGTH: "Word must have exactly {exact_length} letters",
    RuleKind.CONSONANT_BOUNDARIES: "Word must start and end with a consonant " + _LENGTH_TAIL,
    RuleKind.VOWEL_BOUNDARIES: "Word must start and end with a vowel " + _LENGTH_TAIL,
    RuleKind.LETTER_EXACTLY_THRICE: (
        "Word must contain at least one letter that appears exactly three times " + _LENGTH_TAIL
    ),
    RuleKind.PALINDROME: "Word must be a palindrome " + _LENGTH_TAIL,
    RuleKind.NO_REPEATED_LETTERS: "Word must have no repeating letters " + _LENGTH_TAIL,
    RuleKind.THREE_VOWELS_THREE_CONSONANTS: "Word must contain exactly 3 vowels and 3 consonants " + _LENGTH_TAIL,
    RuleKind.SAME_LETTER_THRICE: "Word must contain the same letter three times " + _LENGTH_TAIL,
    RuleKind.BALANCED_VOWELS_CONSONANTS: (
        "Word must have an equal number of vowels and consonants " + _LENGTH_TAIL
    ),
}


def _count_vowels(word: str) -> int:
    return sum(1 for c in word if c in VOWELS)


def _count_consonants(word: str) -> int:
    return sum(1 for c in word if c in CONSONANTS)


def _has_letter_count(word: str, count: int) -> bool:
    return count in Counter(word).values()


_PREDICATES: dict[RuleKind, Callable[[Rule, str], bool]] = {
    RuleKind.MIN_LENGTH: lambda r, w: len(w) >= r.min_length,
    RuleKind.CONTAINS_LETTER: lambda r, w: r.letter in w,
    RuleKind.EXCLUDES_LETTER: lambda r, w: r.letter not in w,
    RuleKind.STARTS_WITH_LETTER: lambda r, w: w.startswith(r.letter),
    RuleKind.ENDS_WITH_LETTER: lambda r, w: w.endswith(r.letter),
    RuleKind.ENDS_WITH_SUFFIX: lambda r, w: w.endswith(r.affix),
    RuleKind.STARTS_WITH_PREFIX: lambda r, w: w.startswith(r.affix),
    RuleKind.DOUBLE_LETTER_PAIRS: lambda _r, w: len(_DOUBLE_LETTER_RE.findall(w)) >= 2,  # noqa: PLR2004
    RuleKind.EXACT_LENGTH: lambda r, w: len(w) == r.min_length + 2,
    RuleKind.CONSONANT_BOUNDARIES: lambda _r, w: len(w) >= 2 and w[0] in CONSONANTS and w[-1] in CONSONANTS,  # noqa: PLR2004
    RuleKind.VOWEL_BOUNDARIES: lambda _r, w: len(w) >= 2 and w[0] in VOWELS and w[-1] in VOWELS,  # noqa: PLR2004
    RuleKind.LETTER_EXACTLY_THRICE: lambda _r, w: _has_letter_count(w, 3),
    RuleKind.PALINDROME: lambda _r, w: w == w[::-1],
    RuleKind.NO_REPEATED_LETTERS: lambda _r, w: len(set(w)) == len(w),
    RuleKind.THREE_VOWELS_THREE_CONSONANTS: lambda _r, w: _count_vowels(w) == 3 and _count_consonants(w) == 3,  # noqa: PLR2004
    RuleKind.SAME_LETTER_THRICE: lambda _r, w: _has_letter_count(w, 3),
    RuleKind.BALANCED_VOWELS_CONSONANTS: lambda _r, w: _count_vowels(w) == _count_consonants(w),
}


class Rule(BaseModel):
    """A single word rule, fully described by its kind and parameters."""

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    kind: RuleKind
    min_length: int
    letter: str = ""
    affix: str = ""

    @computed_field  # type: ignore[prop-decorator]
    @property
    def description(self) -> str:
        return _DESCRIPTIONS[self.kind].format(
            min_length=self.min_length,
            letter=self.letter,
            affix=self.affix,
            exact_length=self.min_length + 2,
        )

    def matches(self, word: str) -> bool:
        """Evaluate the rule against a word (compared in lowercase)."""
        return _PREDICATES[self.kind](self, word.lower())


def random_letter(rng: random.Random | None = None) -> str:
    """Pick a fresh seed letter."""
    return (rng or random).choice(string.ascii_lowercase)


def generate_rules(min_length: int, letter: str) -> list[Rule]:
    """Build the full rule rotation for a minimum length and seed letter."""
    affixes = {
        RuleKind.ENDS_WITH_SUFFIX: SUFFIX_LITERAL,
        RuleKind.STARTS_WITH_PREFIX: PREFIX_LITERAL,
    }
    return [
        Rule(kind=kind, min_length=min_length, letter=letter.lower(), affix=affixes.get(kind, ""))
        for kind in RuleKind
    ]


RULE_COUNT = len(RuleKind)


def rule_at(index: int, min_length: int, rng: random.Random | None = None) -> Rule:
    """Return the rule at a rotation index, seeded with a freshly chosen letter."""
    return generate_rules(min_length, random_letter(rng))[index % RULE_COUNT]


def next_rule(current_index: int | None, min_length: int, rng: random.Random | None = None) -> tuple[int, Rule]:
    """Advance the rotation by one and return (new_index, rule)."""
    index = ((current_index or 0) + 1) % RULE_COUNT
    return index, rule_at(index, min_length, rng)


def resolve_rule(description: str, min_length: int) -> Rule | None:
    """Recover a rule from its rendered description text.

    Regenerates the rotation with the stored minimum length and the letter
    quoted in the description, then matches by description equality. Used
    for documents that only kept the rule text.
    """
    match = _QUOTED_LETTER_RE.search(description)
    letter = match.group(1).lower() if match else "a"
    for rule in generate_rules(min_length, letter):
        if rule.description == description:
            return rule
    return None
