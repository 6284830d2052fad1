"""Exception hierarchy shared by the scheduler and the plugin registry."""

from __future__ import annotations

from typing import Any


class CourierError(Exception):
    """Base class for every error raised by courier."""


class InvalidScheduleError(CourierError, ValueError):
    """A job was configured with times that can never be honoured."""


class InvalidIntervalError(InvalidScheduleError):
    """A recurrence interval is not a known cadence or a positive ms count."""

    def __init__(self, interval: Any) -> None:
        self.interval = interval
        super().__init__(
            f"Invalid interval {interval!r}: use 'hourly', 'daily', 'weekly' "
            "or a positive number of milliseconds"
        )


class DuplicateJobError(CourierError, ValueError):
    """A job with the same id is already scheduled."""

    def __init__(self, job_id: str) -> None:
        self.job_id = job_id
        super().__init__(f"Job '{job_id}' already exists")


class JobNotFoundError(CourierError, KeyError):
    """No pending or active job has the requested id."""

    def __init__(self, job_id: str) -> None:
        self.job_id = job_id
        super().__init__(job_id)

    def __str__(self) -> str:
        return f"Job '{self.job_id}' not found"


class SendFailure(CourierError):
    """Delivery of a job failed. The sender's exception is ``__cause__``."""

    def __init__(self, job_id: str, to: str, message: str) -> None:
        self.job_id = job_id
        self.to = to
        super().__init__(f"Failed to send job '{job_id}' to {to}: {message}")


class HookFailure(CourierError):
    """A plugin hook could not complete."""

    def __init__(self, plugin_name: str, hook: str, message: str) -> None:
        self.plugin_name = plugin_name
        self.hook = hook
        super().__init__(message)


class ImportFormatError(CourierError, ValueError):
    """Persisted scheduler data is malformed; nothing was imported."""


class DuplicatePluginError(CourierError, ValueError):
    """A plugin with the same name is already registered."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Plugin '{name}' is already registered")


class DestroyedError(CourierError, RuntimeError):
    """The component was destroyed and no longer accepts work."""


class SchedulerDestroyedError(DestroyedError):
    def __init__(self) -> None:
        super().__init__("Scheduler has been destroyed")


class RegistryDestroyedError(DestroyedError):
    def __init__(self) -> None:
        super().__init__("Plugin registry has been destroyed")
