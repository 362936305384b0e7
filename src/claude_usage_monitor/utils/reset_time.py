"""Parse the reset timestamps printed by Claude Code's /usage screen.

Accepted shapes (a trailing "(TZ)" annotation is ignored):

    4:59pm            today, or tomorrow if that time has passed
    5pm
    Dec 16, 10:59am   this year, or next year if more than two days ago
    Dec 16, 11am

The annotated zone is discarded and the result lives in the calendar of
``now`` (the host's local time by default). This is an approximation: a
reset printed for another zone will be off by the zone difference.
"""

from datetime import datetime, timedelta, timezone

# Dates this far in the past are assumed to belong to next year
YEAR_ROLLOVER_GRACE = timedelta(days=2)

_MONTHS = {
    name: index
    for index, name in enumerate(
        ("jan", "feb", "mar", "apr", "may", "jun", "jul", "aug", "sep", "oct", "nov", "dec"),
        start=1,
    )
}


def parse_reset_time(text: str, now: datetime | None = None) -> datetime | None:
    """Convert a reset-time string into a datetime. Returns None if unparsable."""
    if now is None:
        now = datetime.now().astimezone()
    if not text:
        return None

    cleaned = text.split("(", 1)[0].strip()
    tokens = [t for t in cleaned.replace(",", " ").split() if t.lower() != "at"]
    # "4:59 pm" → "4:59pm"
    if len(tokens) >= 2 and tokens[-1].lower() in ("am", "pm"):
        tokens[-2:] = [tokens[-2] + tokens[-1]]

    if len(tokens) == 1:
        return _parse_time_only(tokens[0], now)
    if len(tokens) == 3:
        return _parse_month_day_time(tokens, now)
    return None


def parse_clock(token: str) -> tuple[int, int] | None:
    """Parse '10:59am' / '5pm' into a 24-hour (hour, minute) pair."""
    token = token.strip().lower()
    if len(token) < 3 or token[-2:] not in ("am", "pm"):
        return None

    body, meridiem = token[:-2], token[-2:]
    hour_str, _, minute_str = body.partition(":")
    if not minute_str:
        minute_str = "0"
    if not hour_str.isdigit() or not minute_str.isdigit():
        return None

    hour, minute = int(hour_str), int(minute_str)
    if not 1 <= hour <= 12 or not 0 <= minute <= 59:
        return None

    hour %= 12
    if meridiem == "pm":
        hour += 12
    return hour, minute


def _in_zone_of(wall: datetime, now: datetime) -> datetime:
    """Attach now's zone to a naive wall-clock time, with the offset valid on that date."""
    if isinstance(now.tzinfo, timezone) and now.utcoffset() == now.astimezone().utcoffset():
        # Fixed offset taken from the host zone; it may not hold on another date
        return wall.astimezone()
    return wall.replace(tzinfo=now.tzinfo)


def _parse_time_only(token: str, now: datetime) -> datetime | None:
    clock = parse_clock(token)
    if clock is None:
        return None
    hour, minute = clock
    wall_now = now.replace(tzinfo=None)
    candidate = wall_now.replace(hour=hour, minute=minute, second=0, microsecond=0)
    if candidate < wall_now:
        candidate += timedelta(days=1)
    return _in_zone_of(candidate, now)


def _parse_month_day_time(tokens: list[str], now: datetime) -> datetime | None:
    month_token, day_token, time_token = tokens
    month = _MONTHS.get(month_token[:3].lower())
    clock = parse_clock(time_token)
    if month is None or clock is None or not day_token.isdigit():
        return None

    hour, minute = clock
    wall_now = now.replace(tzinfo=None)
    try:
        candidate = wall_now.replace(
            month=month, day=int(day_token),
            hour=hour, minute=minute, second=0, microsecond=0,
        )
    except ValueError:
        return None

    if candidate < wall_now - YEAR_ROLLOVER_GRACE:
        try:
            candidate = candidate.replace(year=candidate.year + 1)
        except ValueError:
            # Feb 29 with no leap day next year
            candidate = candidate.replace(year=candidate.year + 1, day=28)
    return _in_zone_of(candidate, now)
