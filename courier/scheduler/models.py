"""Scheduled job data models and their persisted record shapes."""

from __future__ import annotations

import uuid
import zoneinfo
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Annotated, Any, ClassVar

from pydantic import AwareDatetime, BaseModel, Field, StrictInt, model_validator

from courier.errors import InvalidScheduleError
from courier.scheduler.recurrence import Interval, NamedInterval
from courier.sender import Content, SendResult


class JobKind(str, Enum):
    ONCE = "once"
    RECURRING = "recurring"


class MessageStatus(str, Enum):
    """Lifecycle of a one-time job. Everything but PENDING is terminal."""

    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"
    CANCELLED = "cancelled"


class RecurringStatus(str, Enum):
    """Lifecycle of a recurring job. Everything but ACTIVE is terminal."""

    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


def make_job_id() -> str:
    """Generate a new job ID."""
    return f"sched_{uuid.uuid4().hex}"


def ensure_aware(value: datetime, timezone: str = "UTC") -> datetime:
    """Attach *timezone* to a naive datetime; aware values pass through."""
    if value.tzinfo is None:
        return value.replace(tzinfo=zoneinfo.ZoneInfo(timezone))
    return value


# -- Persisted records ---------------------------------------------------------


class ScheduledRecord(BaseModel):
    """Export shape of a ScheduledMessage."""

    id: str = Field(min_length=1)
    to: str = Field(min_length=1)
    content: str | dict[str, Any]
    send_at: AwareDatetime
    status: MessageStatus = MessageStatus.PENDING
    created_at: AwareDatetime
    error: str | None = None


class RecurringRecord(BaseModel):
    """Export shape of a RecurringMessage."""

    id: str = Field(min_length=1)
    to: str = Field(min_length=1)
    content: str | dict[str, Any]
    start_at: AwareDatetime
    interval: NamedInterval | Annotated[StrictInt, Field(gt=0)]
    next_send_at: AwareDatetime
    end_at: AwareDatetime | None = None
    send_count: Annotated[StrictInt, Field(ge=0)] = 0
    status: RecurringStatus = RecurringStatus.ACTIVE
    created_at: AwareDatetime
    last_sent_at: AwareDatetime | None = None
    error: str | None = None

    @model_validator(mode="after")
    def _check_order(self) -> RecurringRecord:
        if self.last_sent_at is not None and self.next_send_at < self.last_sent_at:
            msg = "next_send_at must not be earlier than last_sent_at"
            raise ValueError(msg)
        return self


class SchedulerSnapshot(BaseModel):
    """The full export structure: every non-terminal job of both kinds."""

    scheduled: list[ScheduledRecord] = Field(default_factory=list)
    recurring: list[RecurringRecord] = Field(default_factory=list)


# -- Live jobs -----------------------------------------------------------------


@dataclass
class ScheduledMessage:
    """A message sent once at ``send_at``.

    Attributes:
        id: Unique identifier within the scheduler.
        to: Recipient (phone number, email or chat id).
        content: Text, or a mapping with ``text`` / ``images`` / ``files``.
        send_at: When to send (timezone-aware).
        status: ``pending`` until sent, failed or cancelled.
        created_at: When the job was scheduled.
        error: Message of the delivery failure, if any.
        result: Delivery metadata after a successful send.
    """

    kind: ClassVar[JobKind] = JobKind.ONCE

    id: str
    to: str
    content: Content
    send_at: datetime
    status: MessageStatus = MessageStatus.PENDING
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    error: str | None = None
    result: SendResult | None = None

    @property
    def due_at(self) -> datetime:
        return self.send_at

    @property
    def is_terminal(self) -> bool:
        return self.status is not MessageStatus.PENDING

    # -- Transitions -----------------------------------------------------------

    def _finish(self, status: MessageStatus) -> None:
        if self.is_terminal:
            msg = f"Job '{self.id}' is already {self.status.value}"
            raise InvalidScheduleError(msg)
        self.status = status

    def mark_sent(self, result: SendResult) -> None:
        self._finish(MessageStatus.SENT)
        self.result = result

    def mark_failed(self, error: str) -> None:
        self._finish(MessageStatus.FAILED)
        self.error = error

    def cancel(self) -> None:
        self._finish(MessageStatus.CANCELLED)

    def reschedule(self, when: datetime) -> None:
        self.send_at = when

    # -- Serialization ---------------------------------------------------------

    def to_record(self) -> ScheduledRecord:
        return ScheduledRecord(
            id=self.id,
            to=self.to,
            content=self.content,
            send_at=self.send_at,
            status=self.status,
            created_at=self.created_at,
            error=self.error,
        )

    @classmethod
    def from_record(cls, record: ScheduledRecord) -> ScheduledMessage:
        return cls(
            id=record.id,
            to=record.to,
            content=record.content,
            send_at=record.send_at,
            status=record.status,
            created_at=record.created_at,
            error=record.error,
        )


@dataclass
class RecurringMessage:
    """A message sent every ``interval`` from ``start_at`` until ``end_at``.

    ``last_sent_at`` is the occurrence time of the last successful delivery,
    so ``next_send_at`` never falls behind it.
    """

    kind: ClassVar[JobKind] = JobKind.RECURRING

    id: str
    to: str
    content: Content
    start_at: datetime
    interval: Interval
    next_send_at: datetime
    end_at: datetime | None = None
    send_count: int = 0
    status: RecurringStatus = RecurringStatus.ACTIVE
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    last_sent_at: datetime | None = None
    error: str | None = None
    result: SendResult | None = None

    @property
    def due_at(self) -> datetime:
        return self.next_send_at

    @property
    def is_terminal(self) -> bool:
        return self.status is not RecurringStatus.ACTIVE

    # -- Transitions -----------------------------------------------------------

    def _finish(self, status: RecurringStatus) -> None:
        if self.is_terminal:
            msg = f"Job '{self.id}' is already {self.status.value}"
            raise InvalidScheduleError(msg)
        self.status = status

    def record_success(self, result: SendResult, occurrence: datetime) -> None:
        self.send_count += 1
        self.last_sent_at = occurrence
        self.result = result
        self.error = None

    def record_failure(self, error: str) -> None:
        self.error = error

    def advance(self, next_send_at: datetime) -> None:
        self.next_send_at = next_send_at

    def complete(self) -> None:
        self._finish(RecurringStatus.COMPLETED)

    def cancel(self) -> None:
        self._finish(RecurringStatus.CANCELLED)

    def reschedule(self, when: datetime) -> None:
        if self.last_sent_at is not None and when < self.last_sent_at:
            msg = (
                f"Cannot move job '{self.id}' to {when.isoformat()}, before its "
                f"last delivery at {self.last_sent_at.isoformat()}"
            )
            raise InvalidScheduleError(msg)
        if self.end_at is not None and when > self.end_at:
            msg = (
                f"Cannot move job '{self.id}' to {when.isoformat()}, after its "
                f"end at {self.end_at.isoformat()}"
            )
            raise InvalidScheduleError(msg)
        self.next_send_at = when

    # -- Serialization ---------------------------------------------------------

    def to_record(self) -> RecurringRecord:
        return RecurringRecord(
            id=self.id,
            to=self.to,
            content=self.content,
            start_at=self.start_at,
            interval=self.interval,
            next_send_at=self.next_send_at,
            end_at=self.end_at,
            send_count=self.send_count,
            status=self.status,
            created_at=self.created_at,
            last_sent_at=self.last_sent_at,
            error=self.error,
        )

    @classmethod
    def from_record(cls, record: RecurringRecord) -> RecurringMessage:
        return cls(
            id=record.id,
            to=record.to,
            content=record.content,
            start_at=record.start_at,
            interval=record.interval,
            next_send_at=record.next_send_at,
            end_at=record.end_at,
            send_count=record.send_count,
            status=record.status,
            created_at=record.created_at,
            last_sent_at=record.last_sent_at,
            error=record.error,
        )


Job = ScheduledMessage | RecurringMessage
