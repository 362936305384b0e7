"""Type definitions for Claude Usage Monitor."""

from claude_usage_monitor.types.log_entries import (
    ContentBlock,
    LogEntry,
    LogMessage,
    SessionEntries,
    TokenUsage,
)
from claude_usage_monitor.types.usage import (
    SESSION_WINDOW,
    WEEKLY_WINDOW,
    AggregatedUsage,
    Period,
    SubscriptionPlan,
)
from claude_usage_monitor.types.processes import CONTEXT_LIMIT, ActiveProcess, ProcessSnapshot
from claude_usage_monitor.types.probe import CLIUsageResult
from claude_usage_monitor.types.collaborators import ConfigProvider, NotificationSink, UsageStore

__all__ = [
    "ContentBlock",
    "LogEntry",
    "LogMessage",
    "SessionEntries",
    "TokenUsage",
    "SESSION_WINDOW",
    "WEEKLY_WINDOW",
    "AggregatedUsage",
    "Period",
    "SubscriptionPlan",
    "CONTEXT_LIMIT",
    "ActiveProcess",
    "ProcessSnapshot",
    "CLIUsageResult",
    "ConfigProvider",
    "NotificationSink",
    "UsageStore",
]
