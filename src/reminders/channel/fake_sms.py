"""Fake SMS adapter: records sent messages for testing."""

from reminders.channel.port import OutboundMessage, is_e164
from reminders.channel.recording import RecordingAdapter
from reminders.enums import ChannelType
from reminders.errors import DeliveryError, RecipientValidationError


class FakeSMSAdapter(RecordingAdapter):
    channel = ChannelType.SMS
    id_prefix = "sms"
    default_failure_reason = "SMS delivery failed"

    def validate(self, message: OutboundMessage) -> DeliveryError | None:
        if not is_e164(message.recipient):
            return RecipientValidationError(f"Invalid phone number format: {message.recipient}")
        return None
