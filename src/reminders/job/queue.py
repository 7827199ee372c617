"""Delayed job queue backed by the ReminderJob repository.

The queue's lock is the single serialization point for every mutation of
which jobs are pending or claimed: enqueue, cancel, claim, reschedule and
completion all run under it, so a job can be claimed by at most one
consumer and a cancelled job can never be claimed afterwards.

Persistence is whatever provider the ``reminders`` domain is configured
with; the queue itself keeps no state beyond its lock and listeners.
"""

import asyncio
from collections.abc import Callable
from datetime import datetime

import structlog
from protean.utils.globals import current_domain

from reminders.job.job import JobStatus, ReminderJob
from reminders.utils.time import as_aware

logger = structlog.get_logger(__name__)


class DelayedJobQueue:
    def __init__(self):
        self._lock = asyncio.Lock()
        self._listeners: list[Callable[[], None]] = []

    @property
    def _repo(self):
        return current_domain.repository_for(ReminderJob)

    def on_change(self, callback: Callable[[], None]) -> None:
        """Register a callback fired when the set of pending jobs grows or moves."""
        self._listeners.append(callback)

    def _notify(self):
        for callback in self._listeners:
            callback()

    # -------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------
    async def enqueue(self, job: ReminderJob) -> bool:
        """Add a job unless its id is already taken.

        A live job with the same id wins and keeps its due time. A
        finished or cancelled record is reactivated when ``job``
        supersedes it. Returns whether anything was queued.
        """
        async with self._lock:
            repo = self._repo
            existing = repo.find(job.job_id)
            if existing is None:
                repo.add(job)
            elif job.supersedes(existing):
                existing.reactivate(job)
                repo.add(existing)
            else:
                logger.debug("Job already queued, enqueue ignored", job_id=job.job_id, status=existing.status)
                return False

        logger.info("Job enqueued", job_id=job.job_id, kind=job.kind, due_at=str(job.due_at))
        self._notify()
        return True

    async def cancel_by_prefix(self, prefix: str, reason: str = "cancelled") -> int:
        """Cancel every pending job whose id starts with ``prefix``."""
        async with self._lock:
            repo = self._repo
            jobs = repo.find_with_prefix(prefix, status=JobStatus.PENDING)
            for job in jobs:
                job.cancel(reason)
                repo.add(job)

        if jobs:
            logger.info("Jobs cancelled", prefix=prefix, count=len(jobs), reason=reason)
        return len(jobs)

    async def dequeue_ready(self, now: datetime, limit: int) -> list[ReminderJob]:
        """Claim up to ``limit`` jobs due at or before ``now``, earliest first."""
        if limit <= 0:
            return []

        async with self._lock:
            repo = self._repo
            claimed = []
            for job in repo.find_due(as_aware(now), limit):
                job.claim(now)
                claimed.append(repo.add(job))

        return claimed

    async def reschedule(self, job_id: str, new_due_at: datetime) -> bool:
        """Put a claimed job back in the pending set, keeping its id."""
        async with self._lock:
            repo = self._repo
            job = repo.find(job_id)
            if job is None:
                logger.warning("Cannot reschedule unknown job", job_id=job_id)
                return False
            job.release(new_due_at)
            repo.add(job)

        self._notify()
        return True

    async def complete(self, job_id: str) -> None:
        """Retire a claimed job whose work is finished (sent, dead or skipped)."""
        async with self._lock:
            repo = self._repo
            job = repo.find(job_id)
            if job is not None and JobStatus(job.status) == JobStatus.CLAIMED:
                job.finish()
                repo.add(job)

    async def release_stale_claims(self, now: datetime) -> int:
        """Return jobs left CLAIMED by a previous process to the pending set.

        Only call this before the worker starts: at that point no claim
        can belong to a live task.
        """
        async with self._lock:
            repo = self._repo
            stale = repo.find_claimed()
            for job in stale:
                job.release(now)
                repo.add(job)

        if stale:
            logger.warning("Stale claims released", count=len(stale))
            self._notify()
        return len(stale)

    # -------------------------------------------------------------------
    # Introspection
    # -------------------------------------------------------------------
    def active_jobs(self) -> list[ReminderJob]:
        """Every live job, pending or claimed, in due order."""
        jobs = self._repo.find_live()
        return sorted(jobs, key=lambda job: (as_aware(job.due_at), job.job_id))

    def jobs_with_prefix(self, prefix: str) -> list[ReminderJob]:
        jobs = self._repo.find_with_prefix(prefix)
        return sorted(jobs, key=lambda job: (as_aware(job.due_at), job.job_id))

    def next_due_at(self) -> datetime | None:
        pending = self._repo.find_pending()
        if not pending:
            return None
        return min(as_aware(job.due_at) for job in pending)

    def stats(self) -> dict:
        jobs = self._repo.find_live()
        pending = sum(1 for job in jobs if job.is_pending)
        return {
            "pending": pending,
            "claimed": len(jobs) - pending,
            "total": len(jobs),
        }
