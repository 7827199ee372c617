"""Domain events for the Message aggregate."""

from protean.fields import DateTime, Identifier, Integer, String

from reminders.domain import reminders


@reminders.event(part_of="Message")
class MessageCreated:
    """A message was rendered for a job and is ready to send."""

    __version__ = 1

    message_id: Identifier(required=True)
    channel: String(required=True)
    recipient: String(sanitize=False)
    booking_id: String()
    event_id: String()
    created_at: DateTime(required=True)


@reminders.event(part_of="Message")
class MessageSent:
    """The channel adapter accepted the message."""

    __version__ = 1

    message_id: Identifier(required=True)
    channel: String(required=True)
    provider_message_id: String()
    attempts: Integer(required=True)
    sent_at: DateTime(required=True)


@reminders.event(part_of="Message")
class MessageFailed:
    """An attempt failed and another one is scheduled."""

    __version__ = 1

    message_id: Identifier(required=True)
    channel: String(required=True)
    reason: String(required=True, sanitize=False)
    error_kind: String()
    attempts: Integer(required=True)
    max_retries: Integer(required=True)
    next_attempt_at: DateTime()
    failed_at: DateTime(required=True)


@reminders.event(part_of="Message")
class MessageRetried:
    """A failed message went back to pending for its next attempt."""

    __version__ = 1

    message_id: Identifier(required=True)
    channel: String(required=True)
    attempts: Integer(required=True)
    retried_at: DateTime(required=True)


@reminders.event(part_of="Message")
class MessageDeadLettered:
    """The message failed for good and needs operator attention."""

    __version__ = 1

    message_id: Identifier(required=True)
    channel: String(required=True)
    recipient: String(sanitize=False)
    reason: String(required=True, sanitize=False)
    error_kind: String()
    attempts: Integer(required=True)
    dead_at: DateTime(required=True)
