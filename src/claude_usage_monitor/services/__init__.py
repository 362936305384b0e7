"""Services for Claude Usage Monitor."""

from claude_usage_monitor.services.config_manager import ConfigManager
from claude_usage_monitor.services.log_reader import LogEntryReader, parse_log_lines
from claude_usage_monitor.services.usage_aggregator import UsageAggregator
from claude_usage_monitor.services.process_discovery import ProcessDiscovery
from claude_usage_monitor.services.context_calculator import ContextCalculator, active_context_tokens
from claude_usage_monitor.services.process_monitor import ActiveProcessMonitor
from claude_usage_monitor.services.usage_probe import UsageProbe, parse_usage_output

__all__ = [
    "ConfigManager",
    "LogEntryReader",
    "parse_log_lines",
    "UsageAggregator",
    "ProcessDiscovery",
    "ContextCalculator",
    "active_context_tokens",
    "ActiveProcessMonitor",
    "UsageProbe",
    "parse_usage_output",
]
