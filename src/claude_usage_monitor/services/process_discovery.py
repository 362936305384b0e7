"""Find running Claude Code CLI processes and their working directories."""

import logging
from dataclasses import dataclass

from claude_usage_monitor.errors import ExecutionFailedError, UsageMonitorError
from claude_usage_monitor.services.command_runner import run_command

logger = logging.getLogger(__name__)

PROCESS_NAME = "claude"

# Substrings of `ps aux` lines that mention claude but are not a CLI session
DEFAULT_EXCLUDE_PATTERNS = (
    "Claude.app",
    "Claude Helper",
    "grep claude",
    "ps aux",
    ".exp",
    "claude-usage.exp",
    "mcp-server",
    "worker-service",
    "shell-snapshots",
    ".claude/plugins",
    "node ",
    "bun ",
    "python",
    "/usr/bin/uv",
    "chroma-mcp",
    "/bin/zsh",
    "/bin/bash",
)

# Working directories that belong to tooling, not projects
EXCLUDED_DIRECTORY_MARKERS = ("/.claude/plugins/",)

PS_TIMEOUT = 5.0
LSOF_TIMEOUT = 5.0


@dataclass(frozen=True)
class DiscoveredProcess:
    pid: int
    working_directory: str


def parse_ps_output(output: str, exclude_patterns=DEFAULT_EXCLUDE_PATTERNS) -> list[int]:
    """PIDs of claude CLI processes from `ps aux` output, in listing order."""
    pids = []
    for line in output.splitlines():
        if PROCESS_NAME not in line or line.startswith("USER"):
            continue
        if any(pattern in line for pattern in exclude_patterns):
            continue
        columns = line.split()
        if len(columns) < 2:
            continue
        try:
            pids.append(int(columns[1]))
        except ValueError:
            logger.debug("Unparsable ps line: %s", line)
    return pids


def parse_lsof_cwd(output: str) -> str | None:
    """Extract the cwd path from `lsof -Fn` field output.

    The "fcwd" field line marks the descriptor; the following "n" line is its path.
    """
    found_marker = False
    for line in output.splitlines():
        if line == "fcwd":
            found_marker = True
            continue
        if found_marker and line.startswith("n"):
            return line[1:]
    return None


class ProcessDiscovery:
    """Enumerates claude CLI processes via ps and resolves their cwd via lsof."""

    def __init__(self, exclude_patterns=DEFAULT_EXCLUDE_PATTERNS):
        self._exclude_patterns = tuple(exclude_patterns)

    async def discover_active_processes(self) -> list[DiscoveredProcess]:
        """Running claude CLI sessions with a resolvable project directory.

        Raises ExecutionFailedError if the process listing itself fails.
        """
        result = await run_command(self._ps_argv(), timeout=PS_TIMEOUT)
        if not result.ok:
            raise ExecutionFailedError(f"ps exited with {result.returncode}")

        pids = parse_ps_output(result.stdout, self._exclude_patterns)
        logger.debug("ps matched %d candidate pids", len(pids))

        processes = []
        for pid in pids:
            try:
                cwd = await self.get_working_directory(pid)
            except UsageMonitorError as e:
                logger.debug("Skipping pid %d: %s", pid, e)
                continue
            if any(marker in cwd for marker in EXCLUDED_DIRECTORY_MARKERS):
                logger.debug("Skipping pid %d in plugin directory %s", pid, cwd)
                continue
            processes.append(DiscoveredProcess(pid=pid, working_directory=cwd))

        logger.info("Discovered %d active claude processes", len(processes))
        return processes

    async def get_working_directory(self, pid: int) -> str:
        """Current working directory of pid.

        Raises ExecutionFailedError when lsof fails or reports no cwd.
        """
        result = await run_command(self._lsof_argv(pid), timeout=LSOF_TIMEOUT)
        if not result.ok:
            raise ExecutionFailedError(f"lsof exited with {result.returncode} for pid {pid}")
        cwd = parse_lsof_cwd(result.stdout)
        if cwd is None:
            raise ExecutionFailedError(f"no cwd reported for pid {pid}")
        return cwd

    async def is_process_running(self, pid: int) -> bool:
        try:
            result = await run_command(self._ps_pid_argv(pid), timeout=PS_TIMEOUT)
        except UsageMonitorError:
            return False
        return result.ok

    # Command lines

    def _ps_argv(self) -> list[str]:
        return ["ps", "aux"]

    def _lsof_argv(self, pid: int) -> list[str]:
        return ["lsof", "-a", "-p", str(pid), "-d", "cwd", "-Fn"]

    def _ps_pid_argv(self, pid: int) -> list[str]:
        return ["ps", "-p", str(pid)]
