"""Context-window occupancy of the active conversation in a session log."""

import asyncio
import logging
from pathlib import Path
from typing import Sequence

from claude_usage_monitor.services.log_reader import LogEntryReader
from claude_usage_monitor.types.log_entries import LogEntry
from claude_usage_monitor.types.processes import ActiveProcess
from claude_usage_monitor.utils.path_codec import project_dir_name

logger = logging.getLogger(__name__)

SUMMARY_TYPE = "summary"


def active_context_tokens(entries: Sequence[LogEntry]) -> int:
    """Tokens occupying the context window at the end of `entries`.

    A "summary" record marks a compaction, so only records after the last one
    count. The newest usage record gives cache_read + cache_creation + input;
    output tokens are not in the window yet. With no usage in scope, the
    rate-limit tokens of the scope are summed instead.
    """
    start = 0
    for index in range(len(entries) - 1, -1, -1):
        if entries[index].type == SUMMARY_TYPE:
            start = index + 1
            break
    active = entries[start:]

    for entry in reversed(active):
        usage = entry.usage
        if usage is not None:
            return usage.cache_read_tokens + usage.cache_creation_tokens + usage.input_tokens

    return sum(e.usage.rate_limit_tokens for e in active if e.usage is not None)


class ContextCalculator:
    """Reads session logs through a shared LogEntryReader."""

    def __init__(self, log_reader: LogEntryReader):
        self._log_reader = log_reader

    def conversation_path(self, process: ActiveProcess) -> Path:
        """<root>/-<encoded cwd>/<session_id>.jsonl"""
        return (
            self._log_reader.projects_root
            / project_dir_name(process.working_directory)
            / f"{process.session_id}.jsonl"
        )

    async def calculate_context_usage(self, conversation_path: str | Path) -> int:
        """Context tokens of one session log; 0 on any failure."""
        try:
            entries = await self._log_reader.read_session_file(conversation_path)
        except OSError as e:
            logger.debug("Cannot read %s: %s", conversation_path, e)
            return 0
        tokens = active_context_tokens(entries)
        logger.debug("Context for %s: %d tokens from %d entries", Path(conversation_path).name, tokens, len(entries))
        return tokens

    async def calculate_for_processes(self, processes: Sequence[ActiveProcess]) -> dict[int, int]:
        """Context tokens keyed by process id, computed concurrently."""
        results = await asyncio.gather(
            *(self.calculate_context_usage(self.conversation_path(p)) for p in processes),
            return_exceptions=True,
        )
        usage = {}
        for process, result in zip(processes, results):
            if isinstance(result, BaseException):
                logger.warning("Context calculation failed for pid %d: %s", process.pid, result)
                result = 0
            usage[process.id] = result
        return usage
