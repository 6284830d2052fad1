"""MessageScheduler: one-time and recurring message jobs on a tick loop."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from pydantic import ValidationError

from courier.config import settings
from courier.errors import (
    ImportFormatError,
    InvalidScheduleError,
    JobNotFoundError,
    SchedulerDestroyedError,
    SendFailure,
)
from courier.scheduler.executor import DeliveryExecutor
from courier.scheduler.models import (
    JobKind,
    MessageStatus,
    RecurringMessage,
    RecurringStatus,
    ScheduledMessage,
    SchedulerSnapshot,
    ensure_aware,
    make_job_id,
)
from courier.scheduler.recurrence import next_send_time, validate_interval
from courier.scheduler.store import JobStore, PendingJobs
from courier.sender import SystemClock, maybe_await

if TYPE_CHECKING:
    from datetime import datetime

    from courier.plugins.core import PluginRegistry
    from courier.scheduler.models import Job
    from courier.scheduler.recurrence import Interval
    from courier.sender import Clock, Content, MessageSender, SendResult

logger = logging.getLogger(__name__)

SentCallback = Callable[["Job", "SendResult"], Awaitable[None] | None]
ErrorCallback = Callable[["Job", Exception], Awaitable[None] | None]
CompleteCallback = Callable[["RecurringMessage"], Awaitable[None] | None]

_TICK_JOB_ID = "courier-scheduler-tick"


@dataclass(frozen=True)
class ImportResult:
    imported: int
    skipped: int


class MessageScheduler:
    """Schedules messages for future delivery through a MessageSender.

    Jobs live in memory. ``start()`` runs a tick every *check_interval_ms*
    on an APScheduler interval job; each tick sends every due job in
    next-fire order. A tick that would overlap a running one is skipped.

    After ``destroy()`` the scheduler rejects new work with
    SchedulerDestroyedError, ``cancel``/``reschedule`` return False, queries
    are empty, and no callback fires again.

    Args:
        sender: MessageSender used for delivery.
        clock: Time source (default SystemClock).
        plugins: PluginRegistry notified around every send.
        check_interval_ms: Tick cadence (default from settings).
        timezone: IANA zone attached to naive datetimes (default from settings).
        on_sent: ``(job, result)`` after a successful send.
        on_error: ``(job, error)`` after a failed send.
        on_complete: ``(job)`` when a recurring job passes its ``end_at``.
    """

    def __init__(
        self,
        sender: MessageSender,
        *,
        clock: Clock | None = None,
        plugins: PluginRegistry | None = None,
        check_interval_ms: int | None = None,
        timezone: str | None = None,
        on_sent: SentCallback | None = None,
        on_error: ErrorCallback | None = None,
        on_complete: CompleteCallback | None = None,
    ) -> None:
        self._clock = clock or SystemClock()
        self._executor = DeliveryExecutor(sender, plugins)
        self._store = JobStore()
        self._check_interval_ms = check_interval_ms or settings.scheduler_check_interval_ms
        if self._check_interval_ms <= 0:
            msg = f"check_interval_ms must be positive, got {self._check_interval_ms}"
            raise ValueError(msg)
        self._timezone = timezone or settings.scheduler_timezone
        self._scheduler = AsyncIOScheduler(timezone=self._timezone)
        self._on_sent = on_sent
        self._on_error = on_error
        self._on_complete = on_complete
        self._running = False
        self._ticking = False
        self._destroyed = False

    @property
    def running(self) -> bool:
        return self._running

    @property
    def destroyed(self) -> bool:
        return self._destroyed

    @property
    def check_interval_ms(self) -> int:
        return self._check_interval_ms

    # -- Lifecycle -------------------------------------------------------------

    async def start(self) -> None:
        """Start the tick loop. Must be called from a running event loop."""
        if self._destroyed:
            raise SchedulerDestroyedError
        if self._running:
            return
        self._scheduler.add_job(
            self.tick,
            trigger=IntervalTrigger(
                seconds=self._check_interval_ms / 1000, timezone=self._timezone
            ),
            id=_TICK_JOB_ID,
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        self._scheduler.start()
        self._running = True
        logger.info(
            "Scheduler started with %d job(s) (interval=%dms, tz=%s)",
            len(self._store),
            self._check_interval_ms,
            self._timezone,
        )

    def destroy(self) -> None:
        """Stop the loop and drop every job. Safe to call more than once."""
        if self._destroyed:
            return
        self._destroyed = True
        if self._running:
            self._scheduler.shutdown(wait=False)
            self._running = False
        for job in self._store.all():
            job.cancel()
        self._store.clear()
        logger.info("Scheduler destroyed")

    # -- Job management --------------------------------------------------------

    def schedule(
        self,
        to: str,
        content: Content,
        send_at: datetime,
        *,
        id: str | None = None,  # noqa: A002
    ) -> str:
        """Schedule a one-time message and return its id.

        A ``send_at`` in the past is accepted; the job fires on the next tick.
        """
        self._check_alive()
        self._check_recipient(to)
        job = ScheduledMessage(
            id=id or make_job_id(),
            to=to,
            content=content,
            send_at=self._aware(send_at),
            created_at=self._now(),
        )
        self._store.add(job)
        logger.info("Scheduled message %s for %s", job.id, job.send_at.isoformat())
        return job.id

    def schedule_recurring(
        self,
        to: str,
        content: Content,
        start_at: datetime,
        interval: Interval,
        *,
        end_at: datetime | None = None,
        id: str | None = None,  # noqa: A002
    ) -> str:
        """Schedule a recurring message and return its id.

        Raises InvalidIntervalError for a bad *interval* and
        InvalidScheduleError when *end_at* precedes *start_at*.
        """
        self._check_alive()
        self._check_recipient(to)
        interval = validate_interval(interval)
        start_at = self._aware(start_at)
        end = self._aware(end_at) if end_at is not None else None
        if end is not None and end < start_at:
            msg = f"end_at {end.isoformat()} is before start_at {start_at.isoformat()}"
            raise InvalidScheduleError(msg)

        job = RecurringMessage(
            id=id or make_job_id(),
            to=to,
            content=content,
            start_at=start_at,
            interval=interval,
            next_send_at=start_at,
            end_at=end,
            created_at=self._now(),
        )
        self._store.add(job)
        logger.info(
            "Scheduled recurring message %s starting %s (%s)",
            job.id,
            start_at.isoformat(),
            interval,
        )
        return job.id

    def cancel(self, job_id: str) -> bool:
        """Cancel a pending or active job. Returns False if there was none."""
        if self._destroyed:
            return False
        try:
            job = self._store.remove(job_id)
        except JobNotFoundError:
            logger.debug("Cancel: job %s not found", job_id)
            return False
        job.cancel()
        logger.info("Cancelled %s job %s", job.kind.value, job_id)
        return True

    def reschedule(self, job_id: str, when: datetime) -> bool:
        """Move a pending or active job to *when*. Returns False if not found.

        Raises InvalidScheduleError when a recurring job would move past its
        ``end_at`` or before its last delivery.
        """
        if self._destroyed:
            return False
        job = self._store.get(job_id)
        if job is None or job.is_terminal:
            return False
        when = self._aware(when)
        job.reschedule(when)
        logger.info("Rescheduled %s job %s to %s", job.kind.value, job_id, when.isoformat())
        return True

    def get(self, job_id: str) -> Job | None:
        """Return the live job with *job_id*, or None."""
        if self._destroyed:
            return None
        return self._store.get(job_id)

    def get_pending(self) -> PendingJobs:
        """Snapshot of every non-terminal job in next-fire order."""
        if self._destroyed:
            return PendingJobs([])
        return self._store.snapshot()

    # -- Persistence -----------------------------------------------------------

    def export(self) -> dict[str, Any]:
        """Serialize every non-terminal job to plain JSON-compatible data."""
        if self._destroyed:
            return SchedulerSnapshot().model_dump(mode="json")
        jobs = self._store.all()
        snapshot = SchedulerSnapshot(
            scheduled=[j.to_record() for j in jobs if j.kind is JobKind.ONCE],
            recurring=[j.to_record() for j in jobs if j.kind is JobKind.RECURRING],
        )
        return snapshot.model_dump(mode="json")

    def import_snapshot(self, data: Any) -> ImportResult:
        """Replace all jobs with those in *data* (as produced by ``export``).

        Terminal entries and recurring jobs already past their ``end_at`` are
        skipped. Any malformed entry raises
        ImportFormatError and leaves the current jobs untouched.
        """
        self._check_alive()
        try:
            snapshot = SchedulerSnapshot.model_validate(data)
        except ValidationError as exc:
            msg = f"Invalid scheduler snapshot: {exc}"
            raise ImportFormatError(msg) from exc

        jobs: list[Job] = []
        skipped = 0
        for record in snapshot.scheduled:
            if record.status is not MessageStatus.PENDING:
                skipped += 1
                continue
            jobs.append(ScheduledMessage.from_record(record))
        for record in snapshot.recurring:
            if record.status is not RecurringStatus.ACTIVE:
                skipped += 1
                continue
            if record.end_at is not None and record.next_send_at > record.end_at:
                logger.info("Skipping exhausted recurring job %s", record.id)
                skipped += 1
                continue
            jobs.append(RecurringMessage.from_record(record))

        seen: set[str] = set()
        for job in jobs:
            if job.id in seen:
                msg = f"Invalid scheduler snapshot: duplicate job id '{job.id}'"
                raise ImportFormatError(msg)
            seen.add(job.id)

        self._store.replace(jobs)
        logger.info("Imported %d job(s), skipped %d", len(jobs), skipped)
        return ImportResult(imported=len(jobs), skipped=skipped)

    # -- Tick ------------------------------------------------------------------

    async def tick(self) -> int:
        """Send every job due now. Returns the number of jobs fired."""
        if self._destroyed:
            return 0
        if self._ticking:
            logger.debug("Tick skipped: previous tick still running")
            return 0

        self._ticking = True
        try:
            now = self._now()
            fired = 0
            for job in self._store.due(now):
                if self._destroyed:
                    break
                # A callback earlier in this tick may have cancelled or moved it
                if self._store.get(job.id) is not job or job.due_at > now:
                    continue
                if job.kind is JobKind.ONCE:
                    await self._fire_once(job)
                else:
                    await self._fire_recurring(job)
                fired += 1
            return fired
        finally:
            self._ticking = False

    async def _fire_once(self, job: ScheduledMessage) -> None:
        try:
            result = await self._executor.deliver(job)
        except SendFailure as failure:
            if self._settled_elsewhere(job):
                return
            job.mark_failed(str(failure))
            self._store.discard(job.id)
            await self._emit("on_error", self._on_error, job, failure)
            return

        if self._settled_elsewhere(job):
            return
        job.mark_sent(result)
        self._store.discard(job.id)
        logger.info("Sent message %s", job.id)
        await self._emit("on_sent", self._on_sent, job, result)

    async def _fire_recurring(self, job: RecurringMessage) -> None:
        occurrence = job.next_send_at
        result: SendResult | None = None
        failure: SendFailure | None = None
        try:
            result = await self._executor.deliver(job)
        except SendFailure as exc:
            failure = exc

        if self._settled_elsewhere(job):
            return

        if failure is None:
            job.record_success(result, occurrence)
        else:
            # Cadence continues after a failed send; this occurrence is lost
            job.record_failure(str(failure))

        # Keep a reschedule made while the send was in flight
        if job.next_send_at == occurrence:
            job.advance(next_send_time(occurrence, job.interval))

        completed = job.end_at is not None and job.next_send_at > job.end_at
        if completed:
            job.complete()
            self._store.discard(job.id)

        if failure is None:
            logger.info("Sent recurring message %s (count=%d)", job.id, job.send_count)
            await self._emit("on_sent", self._on_sent, job, result)
        else:
            await self._emit("on_error", self._on_error, job, failure)

        if completed:
            logger.info("Recurring message %s completed after %d send(s)", job.id, job.send_count)
            await self._emit("on_complete", self._on_complete, job)

    # -- Internal --------------------------------------------------------------

    def _settled_elsewhere(self, job: Job) -> bool:
        """True if the job was cancelled or the scheduler destroyed mid-send."""
        if self._destroyed:
            return True
        if job.is_terminal:
            logger.info("Job %s was %s while sending", job.id, job.status.value)
            return True
        return False

    async def _emit(self, name: str, callback: Callable | None, *args: Any) -> None:
        if callback is None or self._destroyed:
            return
        try:
            await maybe_await(callback(*args))
        except Exception:
            logger.exception("Scheduler callback %s failed", name)

    def _check_alive(self) -> None:
        if self._destroyed:
            raise SchedulerDestroyedError

    @staticmethod
    def _check_recipient(to: str) -> None:
        if not to:
            msg = "Recipient must not be empty"
            raise InvalidScheduleError(msg)

    def _aware(self, value: datetime) -> datetime:
        return ensure_aware(value, self._timezone)

    def _now(self) -> datetime:
        return self._aware(self._clock.now())
