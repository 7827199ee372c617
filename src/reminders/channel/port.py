"""Channel adapter port (abstract interface).

Every transport (email, SMS, push, in-app, WhatsApp) implements the same
async ``send`` contract so the dispatch worker never needs to know which
provider sits behind a channel. Adapters report delivery problems by
returning a failed ``DeliveryResult`` carrying a ``DeliveryError``; they
do not raise for them.
"""

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from reminders.enums import ChannelType
from reminders.errors import DeliveryError, RecipientValidationError

E164_PATTERN = re.compile(r"^\+[1-9]\d{1,14}$")


def is_e164(number: str | None) -> bool:
    return bool(number) and E164_PATTERN.match(number) is not None


@dataclass(frozen=True)
class OutboundMessage:
    """What an adapter needs to deliver one message."""

    message_id: str
    recipient: str
    body: str
    subject: str | None = None
    user_id: str | None = None
    data: dict = field(default_factory=dict)


@dataclass(frozen=True)
class DeliveryResult:
    """Result of a single send attempt."""

    success: bool
    message_id: str | None = None
    error: DeliveryError | None = None


@dataclass(frozen=True)
class HealthStatus:
    healthy: bool
    message: str


class ChannelAdapter(ABC):
    """Abstract channel adapter interface."""

    channel: ChannelType

    @abstractmethod
    async def send(self, message: OutboundMessage) -> DeliveryResult:
        """Deliver ``message`` through the transport."""
        ...

    @abstractmethod
    def health_check(self) -> HealthStatus:
        """Report whether required credentials and configuration are present."""
        ...

    def validate(self, message: OutboundMessage) -> DeliveryError | None:
        """Check the recipient before any attempt is made.

        Returns the error instead of raising it so callers can fail the
        message without spending a retry.
        """
        if not message.recipient:
            return RecipientValidationError(f"No {self.channel.value} recipient")
        return None
