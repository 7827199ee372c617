"""ReminderJob aggregate: one unit of delayed dispatch work.

A job is identified by a deterministic ``job_id`` that doubles as the
idempotency key: booking reminders use ``{booking_id}-reminder-{n}``,
alert deliveries use ``{event_id}-{channel}``. A live job is PENDING
(waiting for its ``due_at``) or CLAIMED (handed to the worker). Finished
and cancelled jobs stay on record as DONE or CANCELLED; scheduling the
same id again reactivates the record as a new ``generation``.
"""

import json
from datetime import UTC, datetime, timedelta
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import DateTime, Integer, String, Text

from reminders.domain import reminders
from reminders.enums import ChannelType
from reminders.job.events import (
    ReminderJobCancelled,
    ReminderJobClaimed,
    ReminderJobCompleted,
    ReminderJobRescheduled,
    ReminderJobScheduled,
)
from reminders.utils.time import as_aware


class JobKind(Enum):
    REMINDER = "reminder"
    CANCELLATION = "cancellation"
    CLASSIFICATION = "classification"
    ALERT = "alert"


class JobStatus(Enum):
    PENDING = "pending"
    CLAIMED = "claimed"
    DONE = "done"
    CANCELLED = "cancelled"


_LIVE_STATUSES = {JobStatus.PENDING, JobStatus.CLAIMED}


def reminder_job_id(booking_id: str, reminder_number: int) -> str:
    return f"{booking_id}-reminder-{reminder_number}"


def reminder_prefix(booking_id: str) -> str:
    return f"{booking_id}-reminder-"


def cancellation_job_id(booking_id: str) -> str:
    return f"{booking_id}-cancellation"


def classification_job_id(event_id: str) -> str:
    return f"{event_id}-classify"


def alert_job_id(event_id: str, channel: str) -> str:
    return f"{event_id}-{channel}"


@reminders.aggregate
class ReminderJob:
    job_id: String(identifier=True, max_length=255)
    kind: String(choices=JobKind, required=True)

    # Booking reminders
    booking_id: String(max_length=100)
    reminder_number: Integer()
    scheduled_time: DateTime()  # Appointment time

    # Alert deliveries
    event_id: String(max_length=100)
    user_id: String(max_length=100)

    # Delivery target
    channel: String(choices=ChannelType)
    recipient: String(max_length=255, sanitize=False)
    template: String(max_length=100)
    payload: Text(sanitize=False)  # JSON template context

    # Queue state
    status: String(choices=JobStatus, default=JobStatus.PENDING.value)
    due_at: DateTime(required=True)
    claimed_at: DateTime()
    generation: Integer(default=1)

    created_at: DateTime()
    updated_at: DateTime()

    # -------------------------------------------------------------------
    # Factories
    # -------------------------------------------------------------------
    @classmethod
    def _create(cls, **fields):
        now = datetime.now(UTC)
        job = cls(status=JobStatus.PENDING.value, generation=1, created_at=now, updated_at=now, **fields)
        job.raise_(
            ReminderJobScheduled(
                job_id=job.job_id,
                kind=job.kind,
                booking_id=job.booking_id,
                reminder_number=job.reminder_number,
                channel=job.channel,
                due_at=job.due_at,
            )
        )
        return job

    @classmethod
    def for_reminder(cls, booking, reminder_number: int, interval: timedelta, channel: ChannelType):
        """Reminder ``n`` is due ``n * interval`` before the appointment."""
        if reminder_number < 1:
            raise ValidationError({"reminder_number": ["Reminder numbers start at 1"]})

        return cls._create(
            job_id=reminder_job_id(booking.id, reminder_number),
            kind=JobKind.REMINDER.value,
            booking_id=booking.id,
            reminder_number=reminder_number,
            scheduled_time=booking.scheduled_time,
            channel=channel.value,
            recipient=booking.customer_phone,
            template="booking_reminder",
            payload=json.dumps(booking.reminder_payload()),
            due_at=booking.scheduled_time - reminder_number * interval,
        )

    @classmethod
    def for_cancellation(cls, booking, channel: ChannelType, due_at: datetime):
        return cls._create(
            job_id=cancellation_job_id(booking.id),
            kind=JobKind.CANCELLATION.value,
            booking_id=booking.id,
            scheduled_time=booking.scheduled_time,
            channel=channel.value,
            recipient=booking.customer_phone,
            template="booking_cancellation",
            payload=json.dumps(booking.reminder_payload()),
            due_at=due_at,
        )

    @classmethod
    def for_classification(cls, event_id: str, user_id: str, due_at: datetime):
        """Job that runs the alert processor over a submitted event."""
        return cls._create(
            job_id=classification_job_id(event_id),
            kind=JobKind.CLASSIFICATION.value,
            event_id=event_id,
            user_id=user_id,
            due_at=due_at,
        )

    @classmethod
    def for_alert(
        cls,
        event_id: str,
        user_id: str,
        channel: ChannelType,
        recipient: str,
        template: str,
        context: dict,
        due_at: datetime,
    ):
        return cls._create(
            job_id=alert_job_id(event_id, channel.value),
            kind=JobKind.ALERT.value,
            event_id=event_id,
            user_id=user_id,
            channel=channel.value,
            recipient=recipient,
            template=template,
            payload=json.dumps(context, default=str),
            due_at=due_at,
        )

    # -------------------------------------------------------------------
    # Queue transitions
    # -------------------------------------------------------------------
    def claim(self, claimed_at: datetime):
        if JobStatus(self.status) != JobStatus.PENDING:
            raise ValidationError({"status": [f"Job {self.job_id} is already claimed"]})

        self.status = JobStatus.CLAIMED.value
        self.claimed_at = claimed_at
        self.updated_at = claimed_at

        self.raise_(ReminderJobClaimed(job_id=self.job_id, claimed_at=claimed_at))

    def release(self, due_at: datetime):
        """Return a claimed job to the pending set with a new due time."""
        if JobStatus(self.status) != JobStatus.CLAIMED:
            raise ValidationError({"status": [f"Job {self.job_id} is not claimed"]})

        self.status = JobStatus.PENDING.value
        self.due_at = due_at
        self.claimed_at = None
        self.updated_at = datetime.now(UTC)

        self.raise_(ReminderJobRescheduled(job_id=self.job_id, due_at=due_at))

    def cancel(self, reason: str):
        """Withdraw a pending job. Claimed jobs are already in flight."""
        if JobStatus(self.status) != JobStatus.PENDING:
            raise ValidationError({"status": [f"Job {self.job_id} is not pending and cannot be cancelled"]})

        now = datetime.now(UTC)
        self.status = JobStatus.CANCELLED.value
        self.updated_at = now

        self.raise_(
            ReminderJobCancelled(
                job_id=self.job_id,
                booking_id=self.booking_id,
                reason=reason,
                cancelled_at=now,
            )
        )

    def finish(self):
        """Retire a claimed job whose work is over (sent, dead or skipped)."""
        if JobStatus(self.status) != JobStatus.CLAIMED:
            raise ValidationError({"status": [f"Job {self.job_id} is not claimed"]})

        now = datetime.now(UTC)
        self.status = JobStatus.DONE.value
        self.claimed_at = None
        self.updated_at = now

        self.raise_(ReminderJobCompleted(job_id=self.job_id, generation=self.generation, completed_at=now))

    def supersedes(self, previous: "ReminderJob") -> bool:
        """Whether this freshly built job may take over ``previous``'s id.

        Live jobs are never replaced. A cancelled job always may be; a
        finished one only when the appointment it served has moved.
        """
        status = JobStatus(previous.status)
        if status in _LIVE_STATUSES:
            return False
        if status == JobStatus.CANCELLED:
            return True
        if previous.scheduled_time is None or self.scheduled_time is None:
            return False
        return as_aware(previous.scheduled_time) != as_aware(self.scheduled_time)

    def reactivate(self, replacement: "ReminderJob"):
        """Put a finished or cancelled record back in the queue as a new generation."""
        if self.is_live:
            raise ValidationError({"status": [f"Job {self.job_id} is still live"]})

        self.status = JobStatus.PENDING.value
        self.generation = (self.generation or 1) + 1
        self.claimed_at = None
        for name in ("scheduled_time", "channel", "recipient", "template", "payload", "user_id", "due_at"):
            setattr(self, name, getattr(replacement, name))
        self.updated_at = datetime.now(UTC)

        self.raise_(
            ReminderJobScheduled(
                job_id=self.job_id,
                kind=self.kind,
                booking_id=self.booking_id,
                reminder_number=self.reminder_number,
                channel=self.channel,
                due_at=self.due_at,
            )
        )

    # -------------------------------------------------------------------
    # Query helpers
    # -------------------------------------------------------------------
    @property
    def is_pending(self) -> bool:
        return JobStatus(self.status) == JobStatus.PENDING

    @property
    def is_live(self) -> bool:
        return JobStatus(self.status) in _LIVE_STATUSES

    @property
    def message_id(self) -> str:
        """Id of the Message this generation of the job delivers."""
        if not self.generation or self.generation == 1:
            return self.job_id
        return f"{self.job_id}-g{self.generation}"

    @property
    def context(self) -> dict:
        return json.loads(self.payload) if self.payload else {}

    @property
    def channel_type(self) -> ChannelType | None:
        return ChannelType(self.channel) if self.channel else None
