"""Per-connection message throttling for the game socket."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Callable

    from wordgame.server.settings import WordGameServerSettings


@dataclass(frozen=True)
class ThrottlePolicy:
    """How many messages a single connection may send."""

    per_second: float = 10.0
    burst: int = 20

    @classmethod
    def from_settings(cls, settings: WordGameServerSettings) -> ThrottlePolicy:
        return cls(per_second=settings.rate_limit_per_second, burst=settings.rate_limit_burst)

    def new_bucket(self, clock: Callable[[], float] = time.monotonic) -> MessageBucket:
        return MessageBucket(self, clock)


class MessageBucket:
    """Token bucket for one connection, refilled continuously by its policy.

    allow() spends a token when one is left. retry_after() tells a
    throttled client how long until the next message would be accepted.
    """

    def __init__(self, policy: ThrottlePolicy, clock: Callable[[], float] = time.monotonic) -> None:
        self._policy = policy
        self._clock = clock
        self._tokens = float(policy.burst)
        self._refilled_at = clock()

    def _refill(self) -> None:
        now = self._clock()
        earned = (now - self._refilled_at) * self._policy.per_second
        self._tokens = min(float(self._policy.burst), self._tokens + earned)
        self._refilled_at = now

    def allow(self) -> bool:
        self._refill()
        if self._tokens < 1.0:
            return False
        self._tokens -= 1.0
        return True

    def retry_after(self) -> float:
        self._refill()
        return max(0.0, (1.0 - self._tokens) / self._policy.per_second)
