"""Repository for the ReminderJob aggregate."""

from datetime import datetime

from protean.exceptions import ObjectNotFoundError

from reminders.domain import reminders
from reminders.job.job import JobStatus, ReminderJob
from reminders.utils.time import as_aware

_PAGE_SIZE = 100


@reminders.repository(part_of=ReminderJob)
class ReminderJobRepository:
    """Queue-oriented queries over ReminderJob.

    Queries page through results explicitly so large queues are not
    silently truncated by the provider's default result limit.
    """

    def find(self, job_id: str) -> ReminderJob | None:
        try:
            return self.get(job_id)
        except ObjectNotFoundError:
            return None

    def find_all(self, **filters) -> list[ReminderJob]:
        jobs = []
        offset = 0
        while True:
            query = self._dao.query.filter(**filters) if filters else self._dao.query
            page = query.order_by("job_id").offset(offset).limit(_PAGE_SIZE).all()
            jobs.extend(page.items)
            if len(page.items) < _PAGE_SIZE:
                return jobs
            offset += _PAGE_SIZE

    def find_live(self) -> list[ReminderJob]:
        """Pending and claimed jobs; finished and cancelled records are left out."""
        return self.find_all(status=JobStatus.PENDING.value) + self.find_all(status=JobStatus.CLAIMED.value)

    def find_pending(self) -> list[ReminderJob]:
        return self.find_all(status=JobStatus.PENDING.value)

    def find_claimed(self) -> list[ReminderJob]:
        return self.find_all(status=JobStatus.CLAIMED.value)

    def find_due(self, now: datetime, limit: int) -> list[ReminderJob]:
        """Pending jobs with ``due_at <= now``, earliest first."""
        due = [job for job in self.find_pending() if as_aware(job.due_at) <= now]
        due.sort(key=lambda job: (as_aware(job.due_at), job.job_id))
        return due[:limit]

    def find_with_prefix(self, prefix: str, status: JobStatus | None = None) -> list[ReminderJob]:
        """Live jobs whose id starts with ``prefix``, optionally narrowed to one status."""
        jobs = self.find_all(status=status.value) if status else self.find_live()
        return [job for job in jobs if job.job_id.startswith(prefix)]
