"""Domain events for the NotificationEvent aggregate."""

from protean.fields import DateTime, Identifier, String, Text

from reminders.domain import reminders


@reminders.event(part_of="NotificationEvent")
class NotificationEventReceived:
    """A domain alert event was submitted for classification."""

    __version__ = 1

    event_id: Identifier(required=True)
    event_type: String(required=True)
    user_id: Identifier(required=True)
    received_at: DateTime(required=True)


@reminders.event(part_of="NotificationEvent")
class NotificationEventProcessed:
    """The event produced its alerts, was declined, or failed classification."""

    __version__ = 1

    event_id: Identifier(required=True)
    user_id: Identifier(required=True)
    outcome: String(required=True)
    severity: String()
    channels: Text(sanitize=False)  # JSON list
    processed_at: DateTime(required=True)
