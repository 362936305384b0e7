"""Contracts for the collaborators the engine consumes but does not implement."""

from datetime import datetime
from typing import Any, Protocol, runtime_checkable

from claude_usage_monitor.types.usage import SubscriptionPlan


@runtime_checkable
class ConfigProvider(Protocol):
    """Read-only settings source."""

    def subscription_plan(self) -> SubscriptionPlan: ...

    def notification_thresholds(self) -> tuple[int, int]: ...

    def refresh_interval(self) -> float: ...


class UsageStore(Protocol):
    """Historical usage persistence."""

    def create(self, record: dict[str, Any]) -> None: ...

    def query(self, start: datetime, end: datetime) -> list[dict[str, Any]]: ...

    def delete(self, before: datetime) -> int: ...


class NotificationSink(Protocol):
    """Fire-and-forget notification delivery."""

    def send(self, title: str, body: str) -> None: ...
