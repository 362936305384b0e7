"""Lenient reader for Claude Code session JSONL logs."""

import asyncio
import logging
import threading
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import AsyncIterator, Iterable

import orjson
from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from claude_usage_monitor.types.log_entries import LogEntry, LogMessage, SessionEntries

logger = logging.getLogger(__name__)

CLAUDE_PROJECTS_DIR = Path.home() / ".claude" / "projects"
LOG_SUFFIX = ".jsonl"
DEFAULT_CACHE_TTL = 30.0
DEFAULT_ACTIVE_WINDOW_MINUTES = 30

# Max size for a single JSONL line (10MB)
MAX_LINE_SIZE = 10 * 1024 * 1024

_EARLIEST = datetime.min.replace(tzinfo=timezone.utc)


class _LineRejected(ValueError):
    pass


def parse_log_lines(lines: Iterable[str], source: str = "") -> tuple[list[LogEntry], int]:
    """Parse JSONL lines into LogEntry objects.

    Blank lines are ignored. A line that is not a JSON object is counted and
    skipped; it never affects the other lines. Returns (entries, error_count).
    """
    entries: list[LogEntry] = []
    errors = 0
    for line_num, line in enumerate(lines, start=1):
        line = line.strip()
        if not line:
            continue
        try:
            entries.append(parse_log_line(line))
        except (orjson.JSONDecodeError, _LineRejected) as e:
            errors += 1
            # Only the first failure per file is worth the detail
            if errors == 1:
                logger.debug("Parse error at line %d in %s: %s", line_num, source or "<lines>", e)
    return entries, errors


def parse_log_line(line: str) -> LogEntry:
    if len(line) > MAX_LINE_SIZE:
        raise _LineRejected(f"line exceeds {MAX_LINE_SIZE // (1024 * 1024)}MB")
    raw = orjson.loads(line)
    if not isinstance(raw, dict):
        raise _LineRejected(f"expected object, got {type(raw).__name__}")
    return _parse_raw_entry(raw)


def _parse_raw_entry(raw: dict) -> LogEntry:
    """Field-by-field decode; a bad field becomes None instead of failing the record."""

    def text(key: str) -> str | None:
        value = raw.get(key)
        return value if isinstance(value, str) else None

    return LogEntry(
        type=text("type"),
        timestamp=parse_timestamp(raw.get("timestamp")),
        session_id=text("sessionId"),
        uuid=text("uuid"),
        cwd=text("cwd"),
        message=LogMessage.from_dict(raw.get("message")),
    )


def parse_timestamp(value) -> datetime | None:
    """Parse an ISO-8601 timestamp (fractional seconds optional) into an aware datetime."""
    if not isinstance(value, str) or not value:
        return None
    try:
        # "2025-12-23T00:10:34.068Z"
        ts = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if ts.tzinfo is None:
        ts = ts.astimezone()
    return ts


def _sort_key(entry: LogEntry) -> datetime:
    return entry.timestamp or _EARLIEST


class LogEntryReader:
    """Scans the Claude projects root and parses session logs.

    Owns the parsed-entry cache used by read_all_entries(). The cache lock is
    only held while copying the cached list in or out, never across I/O.
    """

    def __init__(self, projects_root: str | Path | None = None, cache_ttl: float = DEFAULT_CACHE_TTL):
        self._projects_root = Path(projects_root).expanduser() if projects_root else CLAUDE_PROJECTS_DIR
        self._cache_ttl = cache_ttl
        self._cache_lock = threading.Lock()
        self._cached_entries: list[LogEntry] = []
        self._last_load: float | None = None
        self._parse_error_count = 0
        self._counter_lock = threading.Lock()

    @property
    def projects_root(self) -> Path:
        return self._projects_root

    @property
    def is_installed(self) -> bool:
        return self._projects_root.is_dir()

    @property
    def parse_error_count(self) -> int:
        """Total malformed lines skipped since this reader was created."""
        return self._parse_error_count

    # ------------------------------------------------------------------
    # Discovery
    # ------------------------------------------------------------------

    def get_log_directories(self) -> list[Path]:
        """Project directories directly under the root that hold at least one log file.

        Symbolic links are never followed.
        """
        root = self._projects_root
        if not root.is_dir():
            logger.warning("Claude projects directory not found: %s", root)
            return []

        try:
            candidates = sorted(root.iterdir())
        except OSError:
            logger.exception("Failed to list projects directory %s", root)
            return []

        dirs = []
        for entry in candidates:
            if entry.name.startswith(".") or entry.is_symlink():
                continue
            if not entry.is_dir():
                continue
            try:
                if self._list_log_files(entry):
                    dirs.append(entry)
            except OSError as e:
                logger.debug("Skipping unreadable project dir %s: %s", entry.name, e)
        logger.debug("Found %d project directories with logs", len(dirs))
        return dirs

    @staticmethod
    def _list_log_files(project_dir: Path) -> list[Path]:
        return [
            f for f in project_dir.iterdir()
            if f.suffix == LOG_SUFFIX and not f.name.startswith(".") and not f.is_symlink() and f.is_file()
        ]

    def _log_files_with_mtime(self, project_dir: Path) -> list[tuple[Path, float]]:
        files = []
        for f in self._list_log_files(project_dir):
            try:
                files.append((f, f.stat().st_mtime))
            except OSError:
                continue
        return files

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------

    async def read_session_file(self, path: str | Path) -> list[LogEntry]:
        """Parse one session log, in file order. Missing or non-log paths read as empty.

        Raises OSError if the file exists but cannot be read.
        """
        path = Path(path)
        if path.suffix != LOG_SUFFIX:
            logger.warning("Not a JSONL file: %s", path.name)
            return []
        if not path.exists():
            logger.debug("Session file not found: %s", path)
            return []
        return await asyncio.to_thread(self._read_file_sync, path)

    def _read_file_sync(self, path: Path) -> list[LogEntry]:
        content = path.read_text(encoding="utf-8", errors="replace")
        lines = [line for line in content.splitlines() if line.strip()]
        entries, errors = parse_log_lines(lines, source=path.name)
        if errors:
            with self._counter_lock:
                self._parse_error_count += errors
            logger.info("File %s: parsed %d/%d lines, %d errors", path.name, len(entries), len(lines), errors)
        return entries

    async def read_entries_for_project(self, project_dir: str | Path) -> list[LogEntry]:
        """Entries of the most recently modified session (the presumed active one)."""
        project_dir = Path(project_dir)
        if not project_dir.is_dir():
            logger.debug("Project directory not found: %s", project_dir.name)
            return []

        files = await asyncio.to_thread(self._log_files_with_mtime, project_dir)
        if not files:
            logger.debug("No log files in %s", project_dir.name)
            return []

        newest, _ = max(files, key=lambda item: item[1])
        return await self.read_session_file(newest)

    def _recent_files(self, project_dir: Path, active_window_minutes: int) -> list[tuple[Path, float]]:
        cutoff = time.time() - active_window_minutes * 60
        return [(f, mtime) for f, mtime in self._log_files_with_mtime(project_dir) if mtime > cutoff]

    async def read_entries_by_session(
        self,
        project_dir: str | Path,
        active_window_minutes: int = DEFAULT_ACTIVE_WINDOW_MINUTES,
    ) -> list[SessionEntries]:
        """All sessions modified within the window, newest first.

        Files are parsed concurrently; one that fails is left out.
        """
        project_dir = Path(project_dir)
        if not project_dir.is_dir():
            return []

        try:
            recent = await asyncio.to_thread(self._recent_files, project_dir, active_window_minutes)
        except OSError:
            logger.exception("Failed to list sessions in %s", project_dir.name)
            return []
        logger.debug("Found %d active sessions in %s", len(recent), project_dir.name)

        results = await asyncio.gather(
            *(self.read_session_file(f) for f, _ in recent),
            return_exceptions=True,
        )

        sessions = []
        for (f, mtime), result in zip(recent, results):
            if isinstance(result, BaseException):
                logger.warning("Failed to read session file %s: %s", f.name, result)
                continue
            sessions.append(SessionEntries(
                session_id=f.stem,
                session_file=f,
                last_modified=datetime.fromtimestamp(mtime).astimezone(),
                entries=result,
            ))

        sessions.sort(key=lambda s: s.last_modified, reverse=True)
        return sessions

    async def latest_session_file(
        self,
        project_dir: str | Path,
        active_window_minutes: int = DEFAULT_ACTIVE_WINDOW_MINUTES,
    ) -> tuple[str, Path, datetime] | None:
        """(session_id, path, last_modified) of the newest session in the window, unparsed."""
        project_dir = Path(project_dir)
        if not project_dir.is_dir():
            return None
        recent = await asyncio.to_thread(self._recent_files, project_dir, active_window_minutes)
        if not recent:
            return None
        newest, mtime = max(recent, key=lambda item: item[1])
        return newest.stem, newest, datetime.fromtimestamp(mtime).astimezone()

    async def read_all_entries(self) -> list[LogEntry]:
        """Entries from the active session of every project, sorted by timestamp.

        Served from cache while it is younger than cache_ttl.
        """
        started = time.perf_counter()
        with self._cache_lock:
            if (
                self._last_load is not None
                and time.monotonic() - self._last_load < self._cache_ttl
                and self._cached_entries
            ):
                cached = list(self._cached_entries)
            else:
                cached = None
        if cached is not None:
            logger.debug("Cache hit: %d entries", len(cached))
            return cached

        directories = await asyncio.to_thread(self.get_log_directories)
        logger.info("Reading entries from %d directories", len(directories))

        results = await asyncio.gather(
            *(self.read_entries_for_project(d) for d in directories),
            return_exceptions=True,
        )

        all_entries: list[LogEntry] = []
        for directory, result in zip(directories, results):
            if isinstance(result, BaseException):
                logger.warning("Failed to read entries from %s: %s", directory.name, result)
                continue
            all_entries.extend(result)

        all_entries.sort(key=_sort_key)

        with self._cache_lock:
            self._cached_entries = list(all_entries)
            self._last_load = time.monotonic()

        with_usage = sum(1 for e in all_entries if e.usage is not None)
        logger.info(
            "Loaded %d entries (%d with usage) in %.3fs",
            len(all_entries), with_usage, time.perf_counter() - started,
        )
        return all_entries

    def invalidate_cache(self):
        with self._cache_lock:
            self._cached_entries = []
            self._last_load = None
        logger.debug("Cache invalidated")

    # ------------------------------------------------------------------
    # Watching
    # ------------------------------------------------------------------

    async def watch_for_changes(self) -> AsyncIterator[Path]:
        """Yield the projects root each time something under it is written.

        The stream is unbounded. Closing it (break out of ``async for`` or
        ``aclose()``) stops the underlying observer.
        """
        root = self._projects_root
        if not root.is_dir():
            logger.warning("Cannot watch missing directory: %s", root)
            return

        loop = asyncio.get_running_loop()
        queue: asyncio.Queue[Path] = asyncio.Queue()
        handler = _ChangeHandler(lambda: loop.call_soon_threadsafe(queue.put_nowait, root))

        observer = Observer()
        observer.schedule(handler, str(root), recursive=True)
        observer.start()
        logger.debug("Watching %s for changes", root)
        try:
            while True:
                yield await queue.get()
        finally:
            observer.stop()
            await asyncio.to_thread(observer.join)
            logger.debug("Stopped watching %s", root)


class _ChangeHandler(FileSystemEventHandler):
    """Forwards write/create events from the observer thread."""

    def __init__(self, notify):
        super().__init__()
        self._notify = notify

    def on_modified(self, event: FileSystemEvent):
        self._notify()

    def on_created(self, event: FileSystemEvent):
        self._notify()
