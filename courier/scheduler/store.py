"""JobStore: in-memory registry of pending and active jobs."""

from __future__ import annotations

import copy
import itertools
import logging
from collections.abc import Iterable, Iterator
from typing import TYPE_CHECKING, NamedTuple

from courier.errors import DuplicateJobError, JobNotFoundError
from courier.scheduler.models import Job, JobKind

if TYPE_CHECKING:
    from datetime import datetime

logger = logging.getLogger(__name__)


class PendingJob(NamedTuple):
    """One entry of a pending-jobs snapshot."""

    kind: JobKind
    due_at: datetime
    job: Job


class PendingJobs:
    """Snapshot of non-terminal jobs, iterated in next-fire order.

    The jobs are copies taken when the snapshot was made. Ordering is
    computed on first iteration; every ``iter()`` starts over.
    """

    def __init__(self, entries: list[tuple[int, Job]]) -> None:
        self._entries = entries
        self._ordered: list[PendingJob] | None = None

    def _order(self) -> list[PendingJob]:
        if self._ordered is None:
            ranked = sorted(self._entries, key=lambda e: (e[1].due_at, e[0]))
            self._ordered = [PendingJob(job.kind, job.due_at, job) for _, job in ranked]
        return self._ordered

    def __iter__(self) -> Iterator[PendingJob]:
        yield from self._order()

    def __len__(self) -> int:
        return len(self._entries)

    def __bool__(self) -> bool:
        return bool(self._entries)

    def ids(self) -> list[str]:
        return [entry.job.id for entry in self]


class JobStore:
    """Holds the scheduler's live jobs keyed by id.

    Only non-terminal jobs live here. Each job keeps the sequence number it
    was added with so jobs due at the same instant fire in insertion order.
    """

    def __init__(self) -> None:
        self._jobs: dict[str, Job] = {}
        self._seq: dict[str, int] = {}
        self._counter = itertools.count()

    def __len__(self) -> int:
        return len(self._jobs)

    def __contains__(self, job_id: object) -> bool:
        return job_id in self._jobs

    # -- CRUD ------------------------------------------------------------------

    def add(self, job: Job) -> Job:
        """Insert a job. Raises DuplicateJobError if the id is taken."""
        if job.id in self._jobs:
            raise DuplicateJobError(job.id)
        self._jobs[job.id] = job
        self._seq[job.id] = next(self._counter)
        logger.debug("Added %s job %s due %s", job.kind.value, job.id, job.due_at.isoformat())
        return job

    def get(self, job_id: str) -> Job | None:
        """Fetch a job by ID, or None if not found."""
        return self._jobs.get(job_id)

    def require(self, job_id: str) -> Job:
        """Fetch a job by ID. Raises JobNotFoundError if absent."""
        job = self._jobs.get(job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        return job

    def remove(self, job_id: str) -> Job:
        """Remove and return a job. Raises JobNotFoundError if absent."""
        job = self.require(job_id)
        del self._jobs[job_id]
        del self._seq[job_id]
        return job

    def discard(self, job_id: str) -> None:
        """Remove a job if present."""
        self._jobs.pop(job_id, None)
        self._seq.pop(job_id, None)

    def replace(self, jobs: Iterable[Job]) -> None:
        """Swap the whole job set for *jobs*, keeping their order for ties."""
        fresh: dict[str, Job] = {}
        for job in jobs:
            if job.id in fresh:
                raise DuplicateJobError(job.id)
            fresh[job.id] = job
        self.clear()
        for job in fresh.values():
            self.add(job)

    def clear(self) -> None:
        self._jobs.clear()
        self._seq.clear()

    # -- Queries ---------------------------------------------------------------

    def _ranked(self, jobs: Iterable[Job]) -> list[Job]:
        return sorted(jobs, key=lambda j: (j.due_at, self._seq[j.id]))

    def all(self) -> list[Job]:
        """Every job in next-fire order."""
        return self._ranked(self._jobs.values())

    def due(self, now: datetime) -> list[Job]:
        """Jobs with ``due_at <= now`` in firing order."""
        return self._ranked(j for j in self._jobs.values() if j.due_at <= now)

    def by_kind(self, kind: JobKind) -> list[Job]:
        return [j for j in self.all() if j.kind is kind]

    def snapshot(self) -> PendingJobs:
        """Copy every job into a PendingJobs snapshot."""
        return PendingJobs(
            [(self._seq[job.id], copy.deepcopy(job)) for job in self._jobs.values()]
        )
