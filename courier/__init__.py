"""Courier: scheduled message delivery and plugin hooks for a messaging host."""

from courier.errors import (
    CourierError,
    DestroyedError,
    DuplicateJobError,
    DuplicatePluginError,
    HookFailure,
    ImportFormatError,
    InvalidIntervalError,
    InvalidScheduleError,
    JobNotFoundError,
    RegistryDestroyedError,
    SchedulerDestroyedError,
    SendFailure,
)
from courier.plugins import Hook, HookContext, HookError, Plugin, PluginRegistry, logger_plugin
from courier.scheduler import MessageScheduler, SnapshotStore
from courier.sender import Clock, MessageSender, SendResult, SystemClock

__version__ = "0.1.0"

__all__ = [
    "Clock",
    "CourierError",
    "DestroyedError",
    "DuplicateJobError",
    "DuplicatePluginError",
    "Hook",
    "HookContext",
    "HookError",
    "HookFailure",
    "ImportFormatError",
    "InvalidIntervalError",
    "InvalidScheduleError",
    "JobNotFoundError",
    "MessageScheduler",
    "MessageSender",
    "Plugin",
    "PluginRegistry",
    "RegistryDestroyedError",
    "SchedulerDestroyedError",
    "SendFailure",
    "SendResult",
    "SnapshotStore",
    "SystemClock",
    "logger_plugin",
]
