"""Base for fake adapters that record messages in memory for test assertions."""

from collections import deque
from uuid import uuid4

from reminders.channel.port import ChannelAdapter, DeliveryResult, HealthStatus, OutboundMessage
from reminders.errors import DeliveryError, PermanentDeliveryError, TransientDeliveryError


class RecordingAdapter(ChannelAdapter):
    id_prefix = "msg"
    default_failure_reason = "Delivery failed"

    def __init__(self):
        self.sent_messages: list[dict] = []
        self.attempts = 0
        self.should_succeed = True
        self.failure_reason = self.default_failure_reason
        self.failure_retryable = False
        self._scripted_failures: deque[DeliveryError] = deque()

    def configure(self, should_succeed: bool = True, failure_reason: str | None = None, retryable: bool = False):
        """Configure the fake adapter behavior for testing."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason or self.default_failure_reason
        self.failure_retryable = retryable

    def fail_next(self, *errors: DeliveryError):
        """Fail the next ``len(errors)`` sends with these errors, in order."""
        self._scripted_failures.extend(errors)

    async def send(self, message: OutboundMessage) -> DeliveryResult:
        self.attempts += 1

        if self._scripted_failures:
            return DeliveryResult(success=False, error=self._scripted_failures.popleft())

        if not self.should_succeed:
            error_cls = TransientDeliveryError if self.failure_retryable else PermanentDeliveryError
            return DeliveryResult(success=False, error=error_cls(self.failure_reason))

        message_id = f"{self.id_prefix}-{uuid4().hex[:12]}"
        self.sent_messages.append(self._record(message_id, message))
        return DeliveryResult(success=True, message_id=message_id)

    def _record(self, message_id: str, message: OutboundMessage) -> dict:
        return {
            "message_id": message_id,
            "to": message.recipient,
            "body": message.body,
        }

    def health_check(self) -> HealthStatus:
        return HealthStatus(healthy=True, message=f"{self.channel.value} adapter ready")

    def reset(self):
        """Clear sent messages and scripted behavior (useful between tests)."""
        self.sent_messages.clear()
        self.attempts = 0
        self.should_succeed = True
        self.failure_reason = self.default_failure_reason
        self.failure_retryable = False
        self._scripted_failures.clear()
