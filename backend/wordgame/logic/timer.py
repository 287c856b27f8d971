"""
Turn time-limit policy.

Each turn starts from a base allowance that shrinks as the room completes
more rules: two seconds fewer for every four completed rules, never below a
floor.
"""

from pydantic import BaseModel, Field


class TimeLimitPolicy(BaseModel):
    """Parameters of the shrinking turn allowance (seconds)."""

    base_seconds: int = Field(default=10, ge=1)
    floor_seconds: int = Field(default=3, ge=1)
    step_seconds: int = Field(default=2, ge=0)
    rules_per_step: int = Field(default=4, ge=1)

    def time_limit(self, rules_completed: int) -> int:
        """Seconds allowed for a turn after `rules_completed` successful turns."""
        reduction = self.step_seconds * (max(rules_completed, 0) // self.rules_per_step)
        return max(self.floor_seconds, self.base_seconds - reduction)


DEFAULT_TIME_LIMIT_POLICY = TimeLimitPolicy()
