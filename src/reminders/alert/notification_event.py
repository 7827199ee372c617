"""NotificationEvent aggregate: a domain alert event awaiting classification.

The ``processed`` flag flips from False to True exactly once, when the
event has produced its alert jobs, been declined, or failed
classification. A processed event is never classified again, so
re-delivery of the same event id cannot re-trigger notification.
"""

import json
from datetime import UTC, datetime
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Identifier, String, Text

from reminders.alert.events import NotificationEventProcessed, NotificationEventReceived
from reminders.domain import reminders
from reminders.enums import Severity


class ProcessingOutcome(Enum):
    ALERTED = "alerted"
    DECLINED = "declined"
    FAILED = "failed"


@reminders.aggregate
class NotificationEvent:
    event_id: String(identifier=True, max_length=100)
    event_type: String(max_length=100, required=True)
    user_id: Identifier(required=True)
    data: Text(sanitize=False)  # JSON
    severity: String(choices=Severity)  # As declared by the producer
    timestamp: DateTime()

    # Processing
    processed: Boolean(default=False)
    processed_at: DateTime()
    outcome: String(choices=ProcessingOutcome)
    alert_severity: String(choices=Severity)  # As classified
    alert_channels: Text(sanitize=False)  # JSON list
    failure_reason: String(max_length=1000, sanitize=False)

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def create(cls, event_id, event_type, user_id, data=None, severity=None, timestamp=None):
        now = datetime.now(UTC)
        event = cls(
            event_id=event_id,
            event_type=getattr(event_type, "value", event_type),
            user_id=user_id,
            data=json.dumps(data or {}, default=str),
            severity=Severity(severity).value if severity else None,
            timestamp=timestamp or now,
            processed=False,
        )

        event.raise_(
            NotificationEventReceived(
                event_id=event_id,
                event_type=event.event_type,
                user_id=str(user_id),
                received_at=now,
            )
        )

        return event

    @property
    def payload(self) -> dict:
        return json.loads(self.data) if self.data else {}

    # -------------------------------------------------------------------
    # Processing
    # -------------------------------------------------------------------
    def mark_processed(self, outcome, severity=None, channels=(), reason=None):
        """Record the processing outcome. Allowed exactly once."""
        if self.processed:
            raise ValidationError({"processed": [f"Event {self.event_id} was already processed"]})

        outcome = ProcessingOutcome(outcome)
        channel_values = sorted(getattr(channel, "value", channel) for channel in channels)
        severity_value = getattr(severity, "value", severity)

        now = datetime.now(UTC)
        self.processed = True
        self.processed_at = now
        self.outcome = outcome.value
        self.alert_severity = severity_value
        self.alert_channels = json.dumps(channel_values)
        self.failure_reason = reason

        self.raise_(
            NotificationEventProcessed(
                event_id=self.event_id,
                user_id=str(self.user_id),
                outcome=outcome.value,
                severity=severity_value,
                channels=self.alert_channels,
                processed_at=now,
            )
        )
