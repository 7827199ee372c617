"""Fake push adapter: records sent push notifications for testing."""

from reminders.channel.port import OutboundMessage
from reminders.channel.recording import RecordingAdapter
from reminders.enums import ChannelType


class FakePushAdapter(RecordingAdapter):
    channel = ChannelType.PUSH
    id_prefix = "push"
    default_failure_reason = "Push delivery failed"

    def _record(self, message_id: str, message: OutboundMessage) -> dict:
        return {
            "message_id": message_id,
            "device_token": message.recipient,
            "title": message.subject or "",
            "body": message.body,
            "data": dict(message.data),
        }
