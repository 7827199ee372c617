"""Fake email adapter: records sent emails for testing."""

from reminders.channel.port import HealthStatus, OutboundMessage
from reminders.channel.recording import RecordingAdapter
from reminders.enums import ChannelType
from reminders.errors import DeliveryError, RecipientValidationError


class FakeEmailAdapter(RecordingAdapter):
    channel = ChannelType.EMAIL
    id_prefix = "email"
    default_failure_reason = "Email delivery failed"

    def __init__(self, from_address: str | None = "noreply@barberbooking.com"):
        super().__init__()
        self.from_address = from_address

    def validate(self, message: OutboundMessage) -> DeliveryError | None:
        if not message.recipient or "@" not in message.recipient:
            return RecipientValidationError(f"Invalid email address: {message.recipient}")
        return None

    def _record(self, message_id: str, message: OutboundMessage) -> dict:
        return {
            "message_id": message_id,
            "from": self.from_address,
            "to": message.recipient,
            "subject": message.subject or "",
            "body": message.body,
        }

    def health_check(self) -> HealthStatus:
        if not self.from_address:
            return HealthStatus(healthy=False, message="Missing email sender address")
        return HealthStatus(healthy=True, message="Email adapter ready")
