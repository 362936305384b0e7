"""Sum token usage over rolling and calendar windows, and bucket it for charts."""

import logging
import time
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable

from claude_usage_monitor.types.log_entries import LogEntry, TokenUsage
from claude_usage_monitor.types.usage import SESSION_WINDOW, WEEKLY_WINDOW, AggregatedUsage, Period
from claude_usage_monitor.utils.date_windows import (
    local_midnight,
    local_now,
    next_utc_monday,
    shift_hours,
    start_of_day,
    start_of_week,
    to_local,
    truncate_to_bucket,
)

logger = logging.getLogger(__name__)

UNKNOWN_PROJECT = "unknown"


@dataclass
class _Accumulator:
    input_tokens: int = 0
    output_tokens: int = 0
    cache_creation_tokens: int = 0
    cache_read_tokens: int = 0
    entry_count: int = 0

    def add(self, usage: TokenUsage):
        self.input_tokens += usage.input_tokens
        self.output_tokens += usage.output_tokens
        self.cache_creation_tokens += usage.cache_creation_tokens
        self.cache_read_tokens += usage.cache_read_tokens
        self.entry_count += 1

    def freeze(self, period: Period) -> AggregatedUsage:
        return AggregatedUsage(
            input_tokens=self.input_tokens,
            output_tokens=self.output_tokens,
            cache_creation_tokens=self.cache_creation_tokens,
            cache_read_tokens=self.cache_read_tokens,
            period=period,
            entry_count=self.entry_count,
        )


class UsageAggregator:
    """Stateless window arithmetic over parsed log entries.

    Calendar periods use the host's local time zone. No method raises for
    empty input; an empty window aggregates to zeros.
    """

    def __init__(self, first_weekday: int = 0):
        # 0 = Monday ... 6 = Sunday
        self._first_weekday = first_weekday

    def aggregate(self, entries: Iterable[LogEntry], period: Period) -> AggregatedUsage:
        acc = _Accumulator()
        for entry in entries:
            usage = entry.usage
            if usage is None or entry.timestamp is None:
                continue
            if period.contains(entry.timestamp):
                acc.add(usage)
        return acc.freeze(period)

    def aggregate_current_window(self, entries: Iterable[LogEntry], now: datetime | None = None) -> AggregatedUsage:
        now = to_local(now or local_now())
        return self.aggregate(entries, Period(now - SESSION_WINDOW, now))

    def aggregate_today(self, entries: Iterable[LogEntry], now: datetime | None = None) -> AggregatedUsage:
        start = start_of_day(now or local_now())
        end = local_midnight(start.date() + timedelta(days=1))
        return self.aggregate(entries, Period(start, end))

    def aggregate_this_week(self, entries: Iterable[LogEntry], now: datetime | None = None) -> AggregatedUsage:
        start = start_of_week(now or local_now(), self._first_weekday)
        end = local_midnight(start.date() + timedelta(days=7))
        return self.aggregate(entries, Period(start, end))

    def aggregate_rolling_week(self, entries: Iterable[LogEntry], now: datetime | None = None) -> AggregatedUsage:
        now = to_local(now or local_now())
        return self.aggregate(entries, Period(now - WEEKLY_WINDOW, now))

    def aggregate_by_project(self, entries: Iterable[LogEntry]) -> dict[str, AggregatedUsage]:
        """Usage per working directory, each over the span of its own entries."""
        accumulators: dict[str, _Accumulator] = {}
        spans: dict[str, list[datetime]] = {}
        for entry in entries:
            usage = entry.usage
            if usage is None:
                continue
            key = entry.cwd or UNKNOWN_PROJECT
            accumulators.setdefault(key, _Accumulator()).add(usage)
            if entry.timestamp is not None:
                span = spans.setdefault(key, [entry.timestamp, entry.timestamp])
                span[0] = min(span[0], entry.timestamp)
                span[1] = max(span[1], entry.timestamp)

        result = {}
        now = local_now()
        for key, acc in accumulators.items():
            start, end = spans.get(key, (now, now))
            result[key] = acc.freeze(Period(start, end))
        return result

    @staticmethod
    def last_activity(entries: Iterable[LogEntry]) -> datetime | None:
        """Timestamp of the newest usage-bearing entry."""
        latest = None
        for entry in entries:
            if entry.usage is None or entry.timestamp is None:
                continue
            if latest is None or entry.timestamp > latest:
                latest = entry.timestamp
        return latest

    @staticmethod
    def next_weekly_reset(now: datetime | None = None) -> datetime:
        return next_utc_monday(now or local_now())

    @staticmethod
    def next_session_reset(last_activity: datetime | None = None, now: datetime | None = None) -> datetime:
        return (last_activity or now or local_now()) + SESSION_WINDOW

    def aggregate_hourly(
        self,
        entries: Iterable[LogEntry],
        hours: int = 24,
        bucket_hours: int = 1,
        now: datetime | None = None,
    ) -> dict[datetime, AggregatedUsage]:
        """Usage per bucket_hours slot for the last `hours`, oldest slot first.

        Every slot is present even when empty.
        """
        started = time.perf_counter()
        bucket_hours = max(1, bucket_hours)
        base = truncate_to_bucket(now or local_now(), bucket_hours)
        slots = [shift_hours(base, -offset * bucket_hours) for offset in range(hours // bucket_hours)]
        slots.reverse()

        result = self._bucket(entries, slots, lambda ts: truncate_to_bucket(ts, bucket_hours),
                              lambda slot: shift_hours(slot, bucket_hours))
        logger.debug(
            "aggregate_hourly: %d slots of %dh in %.3fs",
            len(slots), bucket_hours, time.perf_counter() - started,
        )
        return result

    def aggregate_daily(
        self,
        entries: Iterable[LogEntry],
        days: int = 7,
        now: datetime | None = None,
    ) -> dict[datetime, AggregatedUsage]:
        """Usage per local calendar day for the last `days`, oldest day first."""
        started = time.perf_counter()
        today = to_local(now or local_now()).date()
        slots = [local_midnight(today - timedelta(days=offset)) for offset in range(days)]
        slots.reverse()

        result = self._bucket(entries, slots, start_of_day,
                              lambda slot: local_midnight(slot.date() + timedelta(days=1)))
        logger.debug("aggregate_daily: %d days in %.3fs", len(slots), time.perf_counter() - started)
        return result

    @staticmethod
    def _bucket(entries, slots, slot_of, slot_end) -> dict[datetime, AggregatedUsage]:
        accumulators = {slot: _Accumulator() for slot in slots}
        if not slots:
            return {}
        window_start = slots[0]

        for entry in entries:
            usage = entry.usage
            ts = entry.timestamp
            if usage is None or ts is None or ts < window_start:
                continue
            acc = accumulators.get(slot_of(ts))
            if acc is not None:
                acc.add(usage)

        return {slot: accumulators[slot].freeze(Period(slot, slot_end(slot))) for slot in slots}
