"""Periodic snapshots of running Claude Code processes and their context usage."""

import asyncio
import logging
from datetime import datetime

from PySide6.QtCore import QObject, Signal, Slot, Property

from claude_usage_monitor.services.context_calculator import ContextCalculator
from claude_usage_monitor.services.log_reader import DEFAULT_ACTIVE_WINDOW_MINUTES, LogEntryReader
from claude_usage_monitor.services.process_discovery import DiscoveredProcess, ProcessDiscovery
from claude_usage_monitor.types.processes import ActiveProcess, ProcessSnapshot
from claude_usage_monitor.utils.path_codec import extract_project_name, project_dir_name

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 5.0


class ActiveProcessMonitor(QObject):
    """Single producer of ProcessSnapshot values.

    Consumers connect to snapshot_updated or read current_snapshot; every
    published snapshot is complete and immutable. A failed cycle publishes an
    empty snapshot rather than leaving the previous one in place.
    """

    snapshot_updated = Signal(object)  # ProcessSnapshot
    snapshot_changed = Signal()
    monitoring_changed = Signal()

    def __init__(
        self,
        discovery: ProcessDiscovery,
        log_reader: LogEntryReader,
        calculator: ContextCalculator,
        active_window_minutes: int = DEFAULT_ACTIVE_WINDOW_MINUTES,
        parent=None,
    ):
        super().__init__(parent)
        self._discovery = discovery
        self._log_reader = log_reader
        self._calculator = calculator
        self._active_window_minutes = active_window_minutes
        self._snapshot: ProcessSnapshot | None = None
        self._task: asyncio.Task | None = None
        # Bumped on stop so a cycle finishing late cannot publish
        self._generation = 0

    # --- Properties ---

    @property
    def current_snapshot(self) -> ProcessSnapshot | None:
        return self._snapshot

    @property
    def is_monitoring(self) -> bool:
        return self._task is not None and not self._task.done()

    def _get_process_count(self) -> int:
        return self._snapshot.total_processes if self._snapshot else 0

    processCount = Property(int, _get_process_count, notify=snapshot_changed)

    def _get_total_context_tokens(self) -> int:
        return self._snapshot.total_context_tokens_used if self._snapshot else 0

    totalContextTokens = Property(int, _get_total_context_tokens, notify=snapshot_changed)

    def _get_monitoring(self) -> bool:
        return self.is_monitoring

    monitoring = Property(bool, _get_monitoring, notify=monitoring_changed)

    # --- Lifecycle ---

    def start_monitoring(self, interval: float = DEFAULT_POLL_INTERVAL):
        """Replace any running poll loop with a new one. Needs a running event loop."""
        self.stop_monitoring()
        loop = asyncio.get_running_loop()
        generation = self._generation
        self._task = loop.create_task(self._poll_loop(interval, generation))
        logger.info("Process monitoring started (interval %.1fs)", interval)
        self.monitoring_changed.emit()

    @Slot()
    def stop_monitoring(self):
        self._generation += 1
        if self._task is None:
            return
        self._task.cancel()
        self._task = None
        logger.info("Process monitoring stopped")
        self.monitoring_changed.emit()

    async def get_current_snapshot(self) -> ProcessSnapshot:
        """Last published snapshot, or the result of one fresh cycle."""
        if self._snapshot is not None:
            return self._snapshot
        return await self.refresh()

    async def refresh(self) -> ProcessSnapshot:
        """Run one cycle now and publish its result."""
        generation = self._generation
        snapshot = await self._safe_cycle()
        self._publish(snapshot, generation)
        return snapshot

    async def _poll_loop(self, interval: float, generation: int):
        while True:
            snapshot = await self._safe_cycle()
            self._publish(snapshot, generation)
            await asyncio.sleep(interval)

    async def _safe_cycle(self) -> ProcessSnapshot:
        try:
            return await self._run_cycle()
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Process monitor cycle failed")
            return ProcessSnapshot.empty()

    def _publish(self, snapshot: ProcessSnapshot, generation: int):
        if generation != self._generation:
            logger.debug("Dropping snapshot from a stopped monitor")
            return
        self._snapshot = snapshot
        self.snapshot_updated.emit(snapshot)
        self.snapshot_changed.emit()

    # --- Cycle ---

    async def _run_cycle(self) -> ProcessSnapshot:
        discovered = await self._discovery.discover_active_processes()

        # One session per working directory
        unique: dict[str, DiscoveredProcess] = {}
        for proc in discovered:
            unique.setdefault(proc.working_directory, proc)

        processes = await asyncio.gather(*(self._build_process(p) for p in unique.values()))
        snapshot = ProcessSnapshot(timestamp=datetime.now().astimezone(), processes=tuple(processes))
        logger.debug(
            "Snapshot: %d processes, %d context tokens",
            snapshot.total_processes, snapshot.total_context_tokens_used,
        )
        return snapshot

    async def _build_process(self, proc: DiscoveredProcess) -> ActiveProcess:
        project_dir = self._log_reader.projects_root / project_dir_name(proc.working_directory)
        try:
            latest = await self._log_reader.latest_session_file(project_dir, self._active_window_minutes)
        except OSError as e:
            logger.warning("Cannot scan sessions for pid %d in %s: %s", proc.pid, project_dir.name, e)
            latest = None

        if latest is None:
            return ActiveProcess(
                id=proc.pid,
                session_id=f"pid-{proc.pid}",
                pid=proc.pid,
                working_directory=proc.working_directory,
                project_name=extract_project_name(proc.working_directory),
            )

        session_id, path, last_modified = latest
        tokens = await self._calculator.calculate_context_usage(path)
        return ActiveProcess(
            id=proc.pid,
            session_id=session_id,
            pid=proc.pid,
            working_directory=proc.working_directory,
            project_name=extract_project_name(proc.working_directory),
            context_tokens_used=tokens,
            last_modified=last_modified,
        )
