"""Local-calendar boundaries for usage windows and chart buckets."""

from datetime import date, datetime, time, timedelta, timezone


def local_now() -> datetime:
    return datetime.now().astimezone()


def to_local(ts: datetime) -> datetime:
    """Convert to host local time. Naive values are taken as already local."""
    return ts.astimezone()


def local_midnight(day: date) -> datetime:
    """Aware local datetime for the start of a calendar day (DST-correct offset)."""
    return datetime.combine(day, time()).astimezone()


def start_of_day(ts: datetime) -> datetime:
    return local_midnight(to_local(ts).date())


def start_of_week(ts: datetime, first_weekday: int = 0) -> datetime:
    """Start of the local calendar week containing ts. 0 = Monday, 6 = Sunday."""
    day = to_local(ts).date()
    offset = (day.weekday() - first_weekday) % 7
    return local_midnight(day - timedelta(days=offset))


def truncate_to_bucket(ts: datetime, bucket_hours: int) -> datetime:
    """Floor ts to the enclosing bucket_hours slot of its local day."""
    local = to_local(ts)
    floored = local.replace(
        tzinfo=None,
        hour=(local.hour // bucket_hours) * bucket_hours,
        minute=0, second=0, microsecond=0,
    )
    return floored.astimezone()


def shift_hours(slot: datetime, hours: int) -> datetime:
    """Move a local slot boundary by whole hours on the wall clock."""
    naive = to_local(slot).replace(tzinfo=None) + timedelta(hours=hours)
    return naive.astimezone()


def next_utc_monday(now: datetime) -> datetime:
    """Next Monday 00:00 UTC strictly after now."""
    now_utc = now.astimezone(timezone.utc)
    days_ahead = (7 - now_utc.weekday()) % 7
    candidate = datetime.combine(now_utc.date() + timedelta(days=days_ahead), time(), tzinfo=timezone.utc)
    if candidate <= now_utc:
        candidate += timedelta(days=7)
    return candidate
