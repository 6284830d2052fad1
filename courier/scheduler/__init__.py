"""Message scheduling: job models, recurrence, in-memory store, and the tick loop."""

from courier.scheduler.engine import ImportResult, MessageScheduler
from courier.scheduler.executor import DeliveryExecutor
from courier.scheduler.models import (
    JobKind,
    MessageStatus,
    RecurringMessage,
    RecurringStatus,
    ScheduledMessage,
)
from courier.scheduler.recurrence import next_send_time, validate_interval
from courier.scheduler.snapshot import SnapshotStore
from courier.scheduler.store import JobStore, PendingJob, PendingJobs

__all__ = [
    "DeliveryExecutor",
    "ImportResult",
    "JobKind",
    "JobStore",
    "MessageScheduler",
    "MessageStatus",
    "PendingJob",
    "PendingJobs",
    "RecurringMessage",
    "RecurringStatus",
    "ScheduledMessage",
    "SnapshotStore",
    "next_send_time",
    "validate_interval",
]
