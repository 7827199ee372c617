"""Message aggregate: one rendered notification and its delivery lifecycle.

A message is created the first time the dispatch worker handles a job and
shares the job's id, so retries of the same job keep updating the same
message instead of producing new ones.

State Machine:
    PENDING → SENT
    PENDING → FAILED → (retry) → PENDING
    PENDING → DEAD
    FAILED → DEAD

``attempts`` counts send attempts actually made. It never exceeds
``max_retries``; a message that has used every attempt can only go DEAD.
"""

from datetime import UTC, datetime
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import DateTime, Integer, String, Text

from reminders.domain import reminders
from reminders.enums import ChannelType
from reminders.message.events import (
    MessageCreated,
    MessageDeadLettered,
    MessageFailed,
    MessageRetried,
    MessageSent,
)


class MessageStatus(Enum):
    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"  # Waiting for its next attempt
    DEAD = "dead"


_VALID_TRANSITIONS = {
    MessageStatus.PENDING: {
        MessageStatus.SENT,
        MessageStatus.FAILED,
        MessageStatus.DEAD,
    },
    MessageStatus.FAILED: {
        MessageStatus.PENDING,  # Via retry
        MessageStatus.DEAD,
    },
    MessageStatus.SENT: set(),  # Terminal
    MessageStatus.DEAD: set(),  # Terminal
}


@reminders.aggregate
class Message:
    message_id: String(identifier=True, max_length=255)

    # Correlation
    booking_id: String(max_length=100)
    event_id: String(max_length=100)
    template: String(max_length=100)

    # Delivery target and content
    channel: String(choices=ChannelType, required=True)
    recipient: String(max_length=255, sanitize=False)
    subject: String(max_length=500, sanitize=False)
    body: Text(sanitize=False)

    status: String(choices=MessageStatus, default=MessageStatus.PENDING.value)

    # Attempts
    attempts: Integer(default=0)
    max_retries: Integer(default=3)
    next_attempt_at: DateTime()

    # Outcome
    provider_message_id: String(max_length=255)
    last_error: String(max_length=1000, sanitize=False)
    error_kind: String(max_length=50)
    sent_at: DateTime()
    dead_at: DateTime()

    created_at: DateTime()
    updated_at: DateTime()

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def create(
        cls,
        message_id,
        channel,
        recipient,
        body=None,
        subject=None,
        template=None,
        booking_id=None,
        event_id=None,
        max_retries=3,
    ):
        """Create a new message in PENDING status."""
        if max_retries < 1:
            raise ValidationError({"max_retries": ["At least one attempt must be allowed"]})

        now = datetime.now(UTC)
        message = cls(
            message_id=message_id,
            channel=channel,
            recipient=recipient,
            body=body,
            subject=subject,
            template=template,
            booking_id=booking_id,
            event_id=event_id,
            status=MessageStatus.PENDING.value,
            attempts=0,
            max_retries=max_retries,
            created_at=now,
            updated_at=now,
        )

        message.raise_(
            MessageCreated(
                message_id=message_id,
                channel=channel,
                recipient=recipient,
                booking_id=booking_id,
                event_id=event_id,
                created_at=now,
            )
        )

        return message

    # -------------------------------------------------------------------
    # State transitions
    # -------------------------------------------------------------------
    def _assert_can_transition(self, target_status):
        current = MessageStatus(self.status)
        if target_status not in _VALID_TRANSITIONS.get(current, set()):
            raise ValidationError({"status": [f"Cannot transition from {current.value} to {target_status.value}"]})

    @property
    def has_attempts_left(self) -> bool:
        return self.attempts < self.max_retries

    @property
    def is_terminal(self) -> bool:
        return not _VALID_TRANSITIONS[MessageStatus(self.status)]

    def begin_attempt(self):
        """Count a send attempt. Only pending messages with attempts left may send."""
        if MessageStatus(self.status) != MessageStatus.PENDING:
            raise ValidationError({"status": [f"Cannot send a {self.status} message"]})
        if not self.has_attempts_left:
            raise ValidationError({"attempts": ["Maximum attempts exhausted"]})

        self.attempts = self.attempts + 1
        self.next_attempt_at = None
        self.updated_at = datetime.now(UTC)

    def mark_sent(self, provider_message_id=None, sent_at=None):
        self._assert_can_transition(MessageStatus.SENT)

        now = sent_at or datetime.now(UTC)
        self.status = MessageStatus.SENT.value
        self.provider_message_id = provider_message_id
        self.last_error = None
        self.error_kind = None
        self.sent_at = now
        self.updated_at = now

        self.raise_(
            MessageSent(
                message_id=self.message_id,
                channel=self.channel,
                provider_message_id=provider_message_id,
                attempts=self.attempts,
                sent_at=now,
            )
        )

    def mark_failed(self, reason, next_attempt_at, error_kind=None):
        """Record a retryable failure; the message waits for ``next_attempt_at``."""
        self._assert_can_transition(MessageStatus.FAILED)
        if not self.has_attempts_left:
            raise ValidationError({"attempts": ["No attempts left, message must be dead-lettered"]})

        now = datetime.now(UTC)
        self.status = MessageStatus.FAILED.value
        self.last_error = reason
        self.error_kind = error_kind
        self.next_attempt_at = next_attempt_at
        self.updated_at = now

        self.raise_(
            MessageFailed(
                message_id=self.message_id,
                channel=self.channel,
                reason=reason,
                error_kind=error_kind,
                attempts=self.attempts,
                max_retries=self.max_retries,
                next_attempt_at=next_attempt_at,
                failed_at=now,
            )
        )

    def retry(self):
        """Return a failed message to PENDING for its next attempt."""
        self._assert_can_transition(MessageStatus.PENDING)

        now = datetime.now(UTC)
        self.status = MessageStatus.PENDING.value
        self.updated_at = now

        self.raise_(
            MessageRetried(
                message_id=self.message_id,
                channel=self.channel,
                attempts=self.attempts,
                retried_at=now,
            )
        )

    def mark_dead(self, reason, error_kind=None):
        self._assert_can_transition(MessageStatus.DEAD)

        now = datetime.now(UTC)
        self.status = MessageStatus.DEAD.value
        self.last_error = reason
        self.error_kind = error_kind
        self.next_attempt_at = None
        self.dead_at = now
        self.updated_at = now

        self.raise_(
            MessageDeadLettered(
                message_id=self.message_id,
                channel=self.channel,
                recipient=self.recipient,
                reason=reason,
                error_kind=error_kind,
                attempts=self.attempts,
                dead_at=now,
            )
        )
