"""Run external commands without blocking the event loop."""

import asyncio
import logging
import os
from dataclasses import dataclass
from typing import Mapping, Sequence

from claude_usage_monitor.errors import CommandTimeoutError, ExecutionFailedError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0


@dataclass(frozen=True)
class CommandResult:
    returncode: int
    stdout: str
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0


async def run_command(
    argv: Sequence[str],
    timeout: float = DEFAULT_TIMEOUT,
    env: Mapping[str, str] | None = None,
    merge_stderr: bool = False,
) -> CommandResult:
    """Run argv to completion and capture its output.

    Both pipes are drained by communicate() while the child runs, so a child
    writing more than a pipe buffer cannot stall. When the timeout expires the
    child is killed and CommandTimeoutError is raised. A command that cannot be
    started raises ExecutionFailedError.
    """
    child_env = None
    if env is not None:
        child_env = {**os.environ, **env}

    try:
        proc = await asyncio.create_subprocess_exec(
            *argv,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT if merge_stderr else asyncio.subprocess.PIPE,
            env=child_env,
        )
    except OSError as e:
        raise ExecutionFailedError(f"cannot start {argv[0]}: {e}") from e

    try:
        stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        logger.warning("%s timed out after %.1fs, killing pid %d", argv[0], timeout, proc.pid)
        await _kill(proc)
        raise CommandTimeoutError(timeout) from None
    except asyncio.CancelledError:
        await _kill(proc)
        raise

    return CommandResult(
        returncode=proc.returncode,
        stdout=stdout.decode("utf-8", errors="replace") if stdout else "",
        stderr=stderr.decode("utf-8", errors="replace") if stderr else "",
    )


async def _kill(proc: asyncio.subprocess.Process):
    if proc.returncode is not None:
        return
    try:
        proc.kill()
    except ProcessLookupError:
        return
    await proc.wait()
