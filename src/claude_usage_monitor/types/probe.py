"""Result of the Claude CLI /usage probe."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from claude_usage_monitor.utils.reset_time import parse_reset_time


@dataclass(frozen=True)
class CLIUsageResult:
    session_used_percent: int = 0
    session_reset_time: Optional[str] = None   # e.g. "4:59pm (KST)"
    weekly_used_percent: int = 0
    weekly_reset_time: Optional[str] = None    # e.g. "Dec 16, 10:59am (KST)"
    fetched_at: datetime = field(default_factory=lambda: datetime.now().astimezone())
    error_message: Optional[str] = None

    @property
    def session_remaining_percent(self) -> int:
        return max(0, 100 - self.session_used_percent)

    @property
    def weekly_remaining_percent(self) -> int:
        return max(0, 100 - self.weekly_used_percent)

    @property
    def has_usage(self) -> bool:
        return self.session_used_percent > 0 or self.weekly_used_percent > 0

    def session_reset_at(self, now: Optional[datetime] = None) -> Optional[datetime]:
        if not self.session_reset_time:
            return None
        return parse_reset_time(self.session_reset_time, now=now)

    def weekly_reset_at(self, now: Optional[datetime] = None) -> Optional[datetime]:
        if not self.weekly_reset_time:
            return None
        return parse_reset_time(self.weekly_reset_time, now=now)
