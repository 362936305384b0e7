"""Errors raised by the usage telemetry engine."""


class UsageMonitorError(Exception):
    """Base class for engine errors."""


class NotInstalledError(UsageMonitorError):
    def __init__(self, what: str = "claude"):
        super().__init__(f"{what} is not installed")
        self.what = what


class ExecutionFailedError(UsageMonitorError):
    def __init__(self, reason: str):
        super().__init__(f"execution failed: {reason}")
        self.reason = reason


class CommandTimeoutError(UsageMonitorError):
    def __init__(self, timeout: float):
        super().__init__(f"command timed out after {timeout:g}s")
        self.timeout = timeout
