"""Alert intake: queues submitted events and turns verdicts into alert jobs.

Submission persists the event and queues a classification job; the
dispatch worker later runs ``handle`` for that job, which classifies the
event, narrows channels through the user's preferences, and queues one
alert job per surviving channel.
"""

from collections.abc import Callable
from datetime import datetime

import structlog
from protean.utils.globals import current_domain

from reminders.alert.notification_event import NotificationEvent, ProcessingOutcome
from reminders.alert.processor import AlertProcessor
from reminders.enums import ChannelType
from reminders.job.job import ReminderJob
from reminders.job.queue import DelayedJobQueue
from reminders.preference.filter import resolve_channels
from reminders.preference.preference import NotificationPreference
from reminders.utils.time import utc_now

logger = structlog.get_logger(__name__)


class AlertIntake:
    def __init__(
        self,
        queue: DelayedJobQueue,
        processor: AlertProcessor,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.queue = queue
        self.processor = processor
        self.clock = clock

    async def submit(self, event: NotificationEvent) -> bool:
        """Queue ``event`` for classification.

        Returns False when the event id was already processed or is
        already waiting for classification.
        """
        repo = current_domain.repository_for(NotificationEvent)
        existing = repo.find(event.event_id)
        if existing is not None and existing.processed:
            logger.info("Event already processed, ignoring redelivery", event_id=event.event_id)
            return False

        if existing is None:
            repo.add(event)

        job = ReminderJob.for_classification(event.event_id, str(event.user_id), self.clock())
        return await self.queue.enqueue(job)

    async def resubmit_unprocessed(self) -> int:
        """Queue classification for stored events that were never classified."""
        queued = 0
        for event in current_domain.repository_for(NotificationEvent).find_unprocessed():
            job = ReminderJob.for_classification(event.event_id, str(event.user_id), self.clock())
            if await self.queue.enqueue(job):
                queued += 1

        if queued:
            logger.info("Unprocessed events requeued", count=queued)
        return queued

    async def handle(self, job: ReminderJob, now: datetime) -> set[ChannelType]:
        """Classify the job's event and queue its alert jobs."""
        repo = current_domain.repository_for(NotificationEvent)
        event = repo.find(job.event_id)
        if event is None:
            logger.warning("Classification job for unknown event", job_id=job.job_id, event_id=job.event_id)
            return set()
        if event.processed:
            logger.info("Event already processed", event_id=event.event_id)
            return set()

        try:
            verdict = self.processor.classify(event)
        except Exception as exc:
            logger.error(
                "Event classification failed",
                event_id=event.event_id,
                event_type=event.event_type,
                error=str(exc),
            )
            event.mark_processed(ProcessingOutcome.FAILED, reason=str(exc))
            repo.add(event)
            return set()

        if not verdict.should_alert:
            logger.info("Event declined", event_id=event.event_id, reason=verdict.reason)
            event.mark_processed(ProcessingOutcome.DECLINED, reason=verdict.reason)
            repo.add(event)
            return set()

        preference = current_domain.repository_for(NotificationPreference).find_for_user(str(event.user_id))
        channels = resolve_channels(event, verdict, preference, now)

        queued = set()
        for channel in sorted(channels, key=lambda c: c.value):
            recipient = preference.recipient_for(channel)
            if not recipient:
                logger.warning(
                    "No recipient for enabled channel, skipping",
                    event_id=event.event_id,
                    user_id=str(event.user_id),
                    channel=channel.value,
                )
                continue

            alert_job = ReminderJob.for_alert(
                event_id=event.event_id,
                user_id=str(event.user_id),
                channel=channel,
                recipient=recipient,
                template=verdict.template,
                context={**verdict.context, "severity": verdict.severity.value},
                due_at=now,
            )
            await self.queue.enqueue(alert_job)
            queued.add(channel)

        if queued:
            event.mark_processed(ProcessingOutcome.ALERTED, severity=verdict.severity, channels=queued)
        else:
            event.mark_processed(
                ProcessingOutcome.DECLINED,
                severity=verdict.severity,
                reason="No eligible channel after preference filtering",
            )
        repo.add(event)

        logger.info(
            "Event classified",
            event_id=event.event_id,
            severity=verdict.severity.value,
            channels=sorted(c.value for c in queued),
        )
        return queued
