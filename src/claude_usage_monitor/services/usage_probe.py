"""Query quota usage from the Claude CLI's own /usage screen.

The CLI only renders /usage on an interactive terminal, so it is driven by a
bundled expect script that attaches a pty, sends the command, and prints:

    SESSION_USED:8
    SESSION_RESET:4:59pm (KST)
    WEEKLY_USED:52
    WEEKLY_RESET:Dec 16, 10:59am (KST)

plus an optional ERROR:<message> line.
"""

import logging
import os
from datetime import datetime
from pathlib import Path
from typing import Sequence

from claude_usage_monitor.errors import ExecutionFailedError, NotInstalledError
from claude_usage_monitor.services.command_runner import run_command
from claude_usage_monitor.services.config_manager import ConfigManager
from claude_usage_monitor.types.probe import CLIUsageResult

logger = logging.getLogger(__name__)

RESOURCES_DIR = Path(__file__).parent.parent / "resources"
USAGE_SCRIPT = RESOURCES_DIR / "claude-usage.exp"
CLI_PATH_ENV = "CLAUDE_USAGE_CLI_PATH"
DEFAULT_TIMEOUT = 30.0

EXPECT_PATHS = ("/usr/bin/expect", "/usr/local/bin/expect", "/opt/homebrew/bin/expect")

_USED_KEYS = ("SESSION_USED", "WEEKLY_USED")


def default_candidate_paths() -> list[str]:
    """Conventional install locations, most specific first.

    A shell `which` is never used; sourcing shell profiles can prompt the user.
    """
    home = Path.home()
    paths = []
    env_path = os.environ.get(CLI_PATH_ENV)
    if env_path:
        paths.append(env_path)
    paths.extend([
        str(home / ".claude" / "local" / "claude"),
        str(home / ".claude" / "bin" / "claude"),
        str(home / ".local" / "bin" / "claude"),
        "/usr/local/bin/claude",
        "/opt/homebrew/bin/claude",
        "/usr/bin/claude",
    ])
    return paths


def _parse_percent(value: str) -> int | None:
    value = value.strip().rstrip("%").strip()
    try:
        return int(value)
    except ValueError:
        return None


def _parse_output(text: str, fetched_at: datetime | None = None) -> tuple[CLIUsageResult, set[str]]:
    values: dict[str, object] = {}
    found: set[str] = set()

    for line in text.splitlines():
        key, sep, value = line.strip().partition(":")
        if not sep:
            continue
        key, value = key.strip(), value.strip()

        if key in _USED_KEYS:
            percent = _parse_percent(value)
            if percent is None:
                logger.debug("Ignoring unparsable %s value: %r", key, value)
                continue
            values[key] = percent
            found.add(key)
        elif key in ("SESSION_RESET", "WEEKLY_RESET"):
            values[key] = value or None
            found.add(key)
        elif key == "ERROR":
            logger.error("Usage script reported: %s", value)
            values[key] = value
            found.add(key)

    result = CLIUsageResult(
        session_used_percent=values.get("SESSION_USED", 0),
        session_reset_time=values.get("SESSION_RESET"),
        weekly_used_percent=values.get("WEEKLY_USED", 0),
        weekly_reset_time=values.get("WEEKLY_RESET"),
        fetched_at=fetched_at or datetime.now().astimezone(),
        error_message=values.get("ERROR"),
    )
    if result.session_used_percent == 0 and result.weekly_used_percent == 0:
        # Usually means the CLI changed its /usage layout
        logger.warning("No usage percentages found in /usage output")
    return result, found


def parse_usage_output(text: str, fetched_at: datetime | None = None) -> CLIUsageResult:
    """Parse KEY:value lines. Unknown lines are ignored; absent keys default to 0/None."""
    return _parse_output(text, fetched_at)[0]


class UsageProbe:
    """Runs the /usage wrapper script and parses its report."""

    def __init__(
        self,
        config: ConfigManager | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        script_path: str | Path | None = None,
        candidate_paths: Sequence[str] | None = None,
        expect_paths: Sequence[str] = EXPECT_PATHS,
    ):
        self._config = config
        self._timeout = timeout
        self._script_path = Path(script_path) if script_path else USAGE_SCRIPT
        self._candidate_paths = list(candidate_paths) if candidate_paths is not None else None
        self._expect_paths = tuple(expect_paths)
        self._cached_path: str | None = None

    def resolve_executable(self) -> str | None:
        """Find the claude binary: memory cache, then persisted cache, then known paths."""
        if self._cached_path:
            if os.path.isfile(self._cached_path):
                return self._cached_path
            logger.debug("Cached claude path is gone: %s", self._cached_path)
            self._cached_path = None

        if self._config is not None:
            persisted = self._config.cached_executable_path()
            if persisted:
                if os.path.isfile(persisted):
                    self._cached_path = persisted
                    return persisted
                logger.debug("Persisted claude path is gone: %s", persisted)
                self._config.set_cached_executable_path(None)

        candidates = self._candidate_paths if self._candidate_paths is not None else default_candidate_paths()
        for path in candidates:
            if os.path.isfile(path):
                logger.debug("Claude found at %s", path)
                self._cached_path = path
                if self._config is not None:
                    self._config.set_cached_executable_path(path)
                return path

        logger.warning("Claude CLI not found in known install locations")
        return None

    def reset_executable_path(self):
        self._cached_path = None
        if self._config is not None:
            self._config.set_cached_executable_path(None)

    def resolve_expect(self) -> str | None:
        for path in self._expect_paths:
            if os.path.isfile(path) and os.access(path, os.X_OK):
                return path
        return None

    def is_available(self) -> bool:
        """True when the CLI, the wrapper script and its interpreter all resolve."""
        return (
            self.resolve_executable() is not None
            and self._script_path.is_file()
            and self.resolve_expect() is not None
        )

    async def fetch_usage(self) -> CLIUsageResult:
        """Run /usage and return the parsed result.

        Raises NotInstalledError, ExecutionFailedError or CommandTimeoutError.
        """
        claude_path = self.resolve_executable()
        if claude_path is None:
            raise NotInstalledError("claude")
        if not self._script_path.is_file():
            raise ExecutionFailedError(f"usage script not found: {self._script_path}")
        expect = self.resolve_expect()
        if expect is None:
            raise NotInstalledError("expect")

        logger.debug("Running %s via %s", self._script_path.name, expect)
        result = await run_command(
            [expect, str(self._script_path), claude_path],
            timeout=self._timeout,
            env={CLI_PATH_ENV: claude_path},
            merge_stderr=True,
        )

        usage, found = _parse_output(result.stdout)
        has_keys = any(key in found for key in _USED_KEYS)
        if not result.ok and not has_keys:
            reason = usage.error_message or f"usage script exited with {result.returncode}"
            raise ExecutionFailedError(reason)
        if usage.error_message and not has_keys:
            raise ExecutionFailedError(usage.error_message)

        logger.info(
            "CLI usage fetched: session=%d%%, weekly=%d%%",
            usage.session_used_percent, usage.weekly_used_percent,
        )
        return usage
