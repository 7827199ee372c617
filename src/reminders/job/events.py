"""Domain events for the ReminderJob aggregate."""

from protean.fields import DateTime, Identifier, Integer, String

from reminders.domain import reminders


@reminders.event(part_of="ReminderJob")
class ReminderJobScheduled:
    """A job was accepted into the delayed queue."""

    __version__ = 1

    job_id: Identifier(required=True)
    kind: String(required=True)
    booking_id: String()
    reminder_number: Integer()
    channel: String()
    due_at: DateTime(required=True)


@reminders.event(part_of="ReminderJob")
class ReminderJobClaimed:
    """A due job was claimed by the dispatch worker."""

    __version__ = 1

    job_id: Identifier(required=True)
    claimed_at: DateTime(required=True)


@reminders.event(part_of="ReminderJob")
class ReminderJobRescheduled:
    """A claimed job went back to the pending set for a later attempt."""

    __version__ = 1

    job_id: Identifier(required=True)
    due_at: DateTime(required=True)


@reminders.event(part_of="ReminderJob")
class ReminderJobCancelled:
    """A pending job was withdrawn before it fired."""

    __version__ = 1

    job_id: Identifier(required=True)
    booking_id: String()
    reason: String(max_length=200)
    cancelled_at: DateTime(required=True)


@reminders.event(part_of="ReminderJob")
class ReminderJobCompleted:
    """The worker finished with a claimed job; its record stays for idempotency."""

    __version__ = 1

    job_id: Identifier(required=True)
    generation: Integer()
    completed_at: DateTime(required=True)
