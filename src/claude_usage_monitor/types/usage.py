"""Aggregated usage and quota plan types."""

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum

SESSION_WINDOW = timedelta(hours=5)
WEEKLY_WINDOW = timedelta(days=7)


@dataclass(frozen=True)
class Period:
    """Half-open time interval [start, end)."""
    start: datetime
    end: datetime

    def contains(self, ts: datetime) -> bool:
        return self.start <= ts < self.end

    @property
    def duration(self) -> timedelta:
        return self.end - self.start


@dataclass(frozen=True)
class AggregatedUsage:
    input_tokens: int
    output_tokens: int
    cache_creation_tokens: int
    cache_read_tokens: int
    period: Period
    entry_count: int = 0

    @classmethod
    def empty(cls, period: Period) -> "AggregatedUsage":
        return cls(0, 0, 0, 0, period, 0)

    @property
    def rate_limit_tokens(self) -> int:
        return self.input_tokens + self.output_tokens + self.cache_creation_tokens

    @property
    def cached_tokens(self) -> int:
        return self.cache_creation_tokens + self.cache_read_tokens

    @property
    def tokens_saved_by_cache(self) -> int:
        return self.cache_read_tokens

    @property
    def cache_efficiency(self) -> float:
        if self.cached_tokens <= 0:
            return 0.0
        return self.cache_read_tokens / self.cached_tokens

    def usage_percentage(self, limit: int) -> float:
        if limit <= 0:
            return 0.0
        return self.rate_limit_tokens / limit * 100

    def remaining_percentage(self, limit: int) -> float:
        return min(100.0, max(0.0, 100 - self.usage_percentage(limit)))


class SubscriptionPlan(str, Enum):
    PRO = "Pro"
    MAX_5X = "Max 5x"
    MAX_20X = "Max 20x"
    CUSTOM = "Custom"

    @property
    def estimated_token_limit(self) -> int:
        """Rate-limit tokens per 5-hour window. Custom plans supply their own."""
        return {
            SubscriptionPlan.PRO: 2_100_000,
            SubscriptionPlan.MAX_5X: 10_500_000,
            SubscriptionPlan.MAX_20X: 42_000_000,
            SubscriptionPlan.CUSTOM: 0,
        }[self]

    @property
    def estimated_weekly_hours(self) -> tuple[int, int]:
        return {
            SubscriptionPlan.PRO: (40, 80),
            SubscriptionPlan.MAX_5X: (140, 280),
            SubscriptionPlan.MAX_20X: (240, 480),
            SubscriptionPlan.CUSTOM: (0, 0),
        }[self]

    @property
    def estimated_weekly_token_limit(self) -> int:
        # ~2000 tokens per hour of usage, midpoint of the published range
        low, high = self.estimated_weekly_hours
        return (low + high) // 2 * 2_000

    @classmethod
    def from_value(cls, value: str) -> "SubscriptionPlan":
        try:
            return cls(value)
        except ValueError:
            return cls.PRO
