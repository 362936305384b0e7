"""Running Claude Code process types."""

from dataclasses import dataclass, field
from datetime import datetime

from claude_usage_monitor.utils.token_format import format_token_count

CONTEXT_LIMIT = 200_000


@dataclass(frozen=True)
class ActiveProcess:
    """A running Claude Code instance and its context-window occupancy."""
    id: int
    session_id: str
    pid: int
    working_directory: str
    project_name: str
    context_tokens_used: int = 0
    last_modified: datetime = field(default_factory=lambda: datetime.now().astimezone())
    context_limit: int = field(default=CONTEXT_LIMIT, init=False)

    @property
    def context_remaining_tokens(self) -> int:
        return max(0, self.context_limit - self.context_tokens_used)

    @property
    def context_usage_percent(self) -> float:
        return self.context_tokens_used / self.context_limit * 100

    @property
    def context_remaining_percent(self) -> float:
        return max(0.0, 100 - self.context_usage_percent)

    @property
    def formatted_context_usage(self) -> str:
        return f"{format_token_count(self.context_tokens_used)}/{format_token_count(self.context_limit)}"


@dataclass(frozen=True)
class ProcessSnapshot:
    timestamp: datetime
    processes: tuple[ActiveProcess, ...] = ()

    @classmethod
    def empty(cls) -> "ProcessSnapshot":
        return cls(timestamp=datetime.now().astimezone(), processes=())

    @property
    def total_processes(self) -> int:
        return len(self.processes)

    @property
    def total_context_tokens_used(self) -> int:
        return sum(p.context_tokens_used for p in self.processes)

    @property
    def average_context_usage_percent(self) -> float:
        if not self.processes:
            return 0.0
        return sum(p.context_usage_percent for p in self.processes) / len(self.processes)
