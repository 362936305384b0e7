"""Application entry point: engine wiring and the headless JSON report."""

import argparse
import asyncio
import logging
import sys
import time
from dataclasses import dataclass
from datetime import datetime

import orjson
from PySide6.QtCore import QCoreApplication

from claude_usage_monitor.errors import UsageMonitorError
from claude_usage_monitor.services.config_manager import ConfigManager
from claude_usage_monitor.services.context_calculator import ContextCalculator
from claude_usage_monitor.services.log_reader import LogEntryReader
from claude_usage_monitor.services.process_discovery import ProcessDiscovery
from claude_usage_monitor.services.process_monitor import ActiveProcessMonitor
from claude_usage_monitor.services.usage_aggregator import UsageAggregator
from claude_usage_monitor.services.usage_probe import UsageProbe
from claude_usage_monitor.types.processes import ProcessSnapshot
from claude_usage_monitor.types.usage import AggregatedUsage
from claude_usage_monitor.utils.token_format import format_time_until

logger = logging.getLogger(__name__)

# Minimum seconds between reports in --watch mode
WATCH_THROTTLE = 2.0


@dataclass
class UsageEngine:
    """All engine components, built once and shared by reference."""
    config: ConfigManager
    log_reader: LogEntryReader
    aggregator: UsageAggregator
    discovery: ProcessDiscovery
    calculator: ContextCalculator
    monitor: ActiveProcessMonitor
    probe: UsageProbe

    @classmethod
    def from_config(cls, config: ConfigManager) -> "UsageEngine":
        log_reader = LogEntryReader(config.log_root(), cache_ttl=config.get_float("general/cacheTtl"))
        discovery = ProcessDiscovery()
        calculator = ContextCalculator(log_reader)
        monitor = ActiveProcessMonitor(
            discovery,
            log_reader,
            calculator,
            active_window_minutes=config.get_int("monitor/activeWindowMinutes"),
        )
        return cls(
            config=config,
            log_reader=log_reader,
            aggregator=UsageAggregator(),
            discovery=discovery,
            calculator=calculator,
            monitor=monitor,
            probe=UsageProbe(config, timeout=config.get_float("probe/timeout")),
        )

    async def report(self, include_probe: bool = True) -> dict:
        """Current usage across every window, the process snapshot and the CLI probe."""
        now = datetime.now().astimezone()
        limit = self.config.token_limit()
        weekly_limit = self.config.weekly_token_limit()

        if not self.log_reader.is_installed:
            logger.warning("No Claude Code logs at %s", self.log_reader.projects_root)

        entries = await self.log_reader.read_all_entries()
        snapshot = await self.monitor.refresh()

        last_activity = self.aggregator.last_activity(entries)
        session_reset = self.aggregator.next_session_reset(last_activity, now=now)
        weekly_reset = self.aggregator.next_weekly_reset(now)

        report = {
            "generated_at": now.isoformat(),
            "plan": self.config.subscription_plan().value,
            "installed": self.log_reader.is_installed,
            "parse_errors": self.log_reader.parse_error_count,
            "windows": {
                "current": _usage_dict(self.aggregator.aggregate_current_window(entries, now), limit),
                "today": _usage_dict(self.aggregator.aggregate_today(entries, now)),
                "this_week": _usage_dict(self.aggregator.aggregate_this_week(entries, now)),
                "rolling_week": _usage_dict(self.aggregator.aggregate_rolling_week(entries, now), weekly_limit),
            },
            "resets": {
                "session": session_reset.isoformat(),
                "session_in": format_time_until(session_reset, now),
                "weekly": weekly_reset.isoformat(),
                "weekly_in": format_time_until(weekly_reset, now),
            },
            "projects": {
                cwd: _usage_dict(usage)
                for cwd, usage in self.aggregator.aggregate_by_project(entries).items()
            },
            "processes": _snapshot_dict(snapshot),
        }

        if include_probe:
            report["probe"] = await self._probe_dict(now)
        return report

    async def _probe_dict(self, now: datetime) -> dict:
        if not self.probe.is_available():
            return {"available": False}
        try:
            result = await self.probe.fetch_usage()
        except UsageMonitorError as e:
            logger.warning("Usage probe failed: %s", e)
            return {"available": True, "error": str(e)}

        session_reset = result.session_reset_at(now)
        weekly_reset = result.weekly_reset_at(now)
        return {
            "available": True,
            "session_used_percent": result.session_used_percent,
            "session_remaining_percent": result.session_remaining_percent,
            "session_reset": session_reset.isoformat() if session_reset else result.session_reset_time,
            "weekly_used_percent": result.weekly_used_percent,
            "weekly_remaining_percent": result.weekly_remaining_percent,
            "weekly_reset": weekly_reset.isoformat() if weekly_reset else result.weekly_reset_time,
            "fetched_at": result.fetched_at.isoformat(),
        }


def _usage_dict(usage: AggregatedUsage, limit: int | None = None) -> dict:
    data = {
        "start": usage.period.start.isoformat(),
        "end": usage.period.end.isoformat(),
        "input_tokens": usage.input_tokens,
        "output_tokens": usage.output_tokens,
        "cache_creation_tokens": usage.cache_creation_tokens,
        "cache_read_tokens": usage.cache_read_tokens,
        "rate_limit_tokens": usage.rate_limit_tokens,
        "entry_count": usage.entry_count,
        "cache_efficiency": round(usage.cache_efficiency, 4),
    }
    if limit:
        data["limit"] = limit
        data["used_percent"] = round(usage.usage_percentage(limit), 1)
        data["remaining_percent"] = round(usage.remaining_percentage(limit), 1)
    return data


def _snapshot_dict(snapshot: ProcessSnapshot) -> dict:
    return {
        "timestamp": snapshot.timestamp.isoformat(),
        "count": snapshot.total_processes,
        "total_context_tokens": snapshot.total_context_tokens_used,
        "items": [
            {
                "pid": p.pid,
                "session_id": p.session_id,
                "project": p.project_name,
                "working_directory": p.working_directory,
                "context": p.formatted_context_usage,
                "context_used_percent": round(p.context_usage_percent, 1),
            }
            for p in snapshot.processes
        ],
    }


def _print_report(report: dict):
    sys.stdout.write(orjson.dumps(report, option=orjson.OPT_INDENT_2).decode() + "\n")
    sys.stdout.flush()


async def _watch(engine: UsageEngine, include_probe: bool):
    """Print a report now and again after log changes, at most once per WATCH_THROTTLE.

    Changes arriving inside the throttle window are coalesced into one
    report printed when the window closes. Returns when the change stream ends.
    """
    _print_report(await engine.report(include_probe))
    last = time.monotonic()
    changed = asyncio.Event()
    pending = False

    async def listen():
        nonlocal pending
        try:
            async for _ in engine.log_reader.watch_for_changes():
                pending = True
                changed.set()
        finally:
            changed.set()

    listener = asyncio.create_task(listen())
    try:
        while True:
            if not pending and listener.done():
                listener.result()
                return
            await changed.wait()
            changed.clear()
            if not pending:
                continue

            remaining = WATCH_THROTTLE - (time.monotonic() - last)
            if remaining > 0:
                await asyncio.sleep(remaining)
            pending = False
            engine.log_reader.invalidate_cache()
            _print_report(await engine.report(include_probe))
            last = time.monotonic()
    finally:
        listener.cancel()
        await asyncio.gather(listener, return_exceptions=True)


def _parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="claude-usage-monitor", description="Report Claude Code token usage.")
    parser.add_argument("--watch", action="store_true", help="print a new report whenever the logs change")
    parser.add_argument("--no-probe", action="store_true", help="skip the claude /usage probe")
    return parser.parse_args(argv)


def run(argv: list[str] | None = None) -> int:
    """Launch the headless report."""
    args = _parse_args(sys.argv[1:] if argv is None else argv)

    app = QCoreApplication.instance() or QCoreApplication([sys.argv[0]])
    app.setApplicationName("Claude Usage Monitor")
    app.setOrganizationName("claude-usage-monitor")
    app.setOrganizationDomain("claude.local")

    config = ConfigManager()
    logging.basicConfig(
        level=logging.DEBUG if config.get_bool("advanced/debugLogging") else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    engine = UsageEngine.from_config(config)
    include_probe = not args.no_probe
    try:
        if args.watch:
            asyncio.run(_watch(engine, include_probe))
        else:
            _print_report(asyncio.run(engine.report(include_probe)))
    except KeyboardInterrupt:
        return 0
    return 0
