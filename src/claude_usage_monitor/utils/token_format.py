"""Display formatting for token counts and reset countdowns."""

from datetime import datetime


def format_token_count(count: int) -> str:
    """Format a token count: 500 → 500, 150000 → 150K, 2100000 → 2.1M."""
    # 999_500 and up would round to "1000K"
    if count >= 999_500:
        return f"{count / 1_000_000:.1f}M"
    if count >= 1000:
        return f"{count / 1000:.0f}K"
    return str(count)


def format_time_until(target: datetime, now: datetime | None = None) -> str:
    """Human-readable countdown until target: '2d 5h', '3h 24m', '12m' or 'reset'."""
    if now is None:
        now = datetime.now(target.tzinfo)

    seconds = int((target - now).total_seconds())
    if seconds <= 0:
        return "reset"

    days, rem = divmod(seconds, 86400)
    hours, rem = divmod(rem, 3600)
    minutes = rem // 60

    if days > 0:
        return f"{days}d {hours}h"
    if hours > 0:
        return f"{hours}h {minutes}m"
    return f"{minutes}m"
