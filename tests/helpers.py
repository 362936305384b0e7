"""Shared test helpers."""

import os
import time
from pathlib import Path

import orjson


def usage_line(
    timestamp: str,
    input_tokens: int = 0,
    output_tokens: int = 0,
    cache_creation: int | None = None,
    cache_read: int | None = None,
    entry_type: str = "assistant",
    cwd: str = "/home/wiz/projects/myapp",
    session_id: str = "sess-1",
) -> str:
    """One assistant record as it appears in a session log."""
    usage = {"input_tokens": input_tokens, "output_tokens": output_tokens}
    if cache_creation is not None:
        usage["cache_creation_input_tokens"] = cache_creation
    if cache_read is not None:
        usage["cache_read_input_tokens"] = cache_read
    return orjson.dumps({
        "type": entry_type,
        "timestamp": timestamp,
        "sessionId": session_id,
        "cwd": cwd,
        "message": {"role": "assistant", "model": "claude-sonnet-4", "usage": usage},
    }).decode()


def write_session(project_dir: Path, session_id: str, lines: list[str], age_seconds: float = 0) -> Path:
    """Write a session log and backdate its mtime by age_seconds."""
    path = project_dir / f"{session_id}.jsonl"
    path.write_text("\n".join(lines) + "\n")
    if age_seconds:
        stamp = time.time() - age_seconds
        os.utime(path, (stamp, stamp))
    return path
