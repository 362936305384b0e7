"""Application configuration manager wrapping QSettings."""

import logging
from pathlib import Path

from PySide6.QtCore import QObject, Signal, Slot, QSettings

from claude_usage_monitor.types.usage import SubscriptionPlan

logger = logging.getLogger(__name__)

# Default values
DEFAULTS = {
    "general/logRoot": "~/.claude/projects",
    "general/refreshInterval": 600,
    "general/cacheTtl": 30,
    "monitor/pollInterval": 5,
    "monitor/activeWindowMinutes": 30,
    "quota/plan": SubscriptionPlan.PRO.value,
    "quota/customTokenLimit": 0,
    "quota/customWeeklyLimit": 0,
    "notifications/lowThreshold": 30,
    "notifications/criticalThreshold": 10,
    "probe/timeout": 30,
    "probe/executablePath": "",
    "advanced/debugLogging": False,
}

EXECUTABLE_PATH_KEY = "probe/executablePath"


class ConfigManager(QObject):
    """Centralized application settings backed by QSettings."""

    settings_changed = Signal(str)  # key

    def __init__(self, settings: QSettings | None = None, parent=None):
        super().__init__(parent)
        self._settings = settings if settings is not None else QSettings()

    @Slot(str, result=str)
    def get_string(self, key: str) -> str:
        return str(self._settings.value(key, DEFAULTS.get(key, "")))

    @Slot(str, result=int)
    def get_int(self, key: str) -> int:
        val = self._settings.value(key, DEFAULTS.get(key, 0))
        try:
            return int(val)
        except (ValueError, TypeError):
            return DEFAULTS.get(key, 0)

    @Slot(str, result=float)
    def get_float(self, key: str) -> float:
        val = self._settings.value(key, DEFAULTS.get(key, 0.0))
        try:
            return float(val)
        except (ValueError, TypeError):
            return float(DEFAULTS.get(key, 0.0))

    @Slot(str, result=bool)
    def get_bool(self, key: str) -> bool:
        val = self._settings.value(key, DEFAULTS.get(key, False))
        if isinstance(val, bool):
            return val
        if isinstance(val, str):
            return val.lower() in ("true", "1", "yes")
        return bool(val)

    @Slot(str, str)
    def set_string(self, key: str, value: str):
        self._settings.setValue(key, value)
        self.settings_changed.emit(key)

    @Slot(str, int)
    def set_int(self, key: str, value: int):
        self._settings.setValue(key, value)
        self.settings_changed.emit(key)

    @Slot(str, float)
    def set_float(self, key: str, value: float):
        self._settings.setValue(key, value)
        self.settings_changed.emit(key)

    @Slot(str, bool)
    def set_bool(self, key: str, value: bool):
        self._settings.setValue(key, value)
        self.settings_changed.emit(key)

    # Quota

    def subscription_plan(self) -> SubscriptionPlan:
        return SubscriptionPlan.from_value(self.get_string("quota/plan"))

    def token_limit(self) -> int:
        """Rate-limit tokens allowed per 5-hour window for the configured plan."""
        plan = self.subscription_plan()
        if plan is SubscriptionPlan.CUSTOM:
            return self.get_int("quota/customTokenLimit")
        return plan.estimated_token_limit

    def weekly_token_limit(self) -> int:
        plan = self.subscription_plan()
        if plan is SubscriptionPlan.CUSTOM:
            return self.get_int("quota/customWeeklyLimit")
        return plan.estimated_weekly_token_limit

    def notification_thresholds(self) -> tuple[int, int]:
        """(low, critical) remaining-percentage thresholds."""
        return self.get_int("notifications/lowThreshold"), self.get_int("notifications/criticalThreshold")

    def refresh_interval(self) -> float:
        return self.get_float("general/refreshInterval")

    def log_root(self) -> Path:
        return Path(self.get_string("general/logRoot")).expanduser()

    # Persisted executable path for the usage probe

    def cached_executable_path(self) -> str | None:
        return self.get_string(EXECUTABLE_PATH_KEY) or None

    def set_cached_executable_path(self, path: str | None):
        if path:
            self.set_string(EXECUTABLE_PATH_KEY, path)
        else:
            self._settings.remove(EXECUTABLE_PATH_KEY)
            self.settings_changed.emit(EXECUTABLE_PATH_KEY)
