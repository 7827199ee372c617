"""In-app channel: a per-user inbox the front end polls.

Delivery into the inbox cannot fail for transport reasons, so this
adapter is used as-is in every environment.
"""

from dataclasses import dataclass, field
from datetime import datetime
from uuid import uuid4

from reminders.channel.port import ChannelAdapter, DeliveryResult, HealthStatus, OutboundMessage
from reminders.enums import ChannelType
from reminders.utils.time import utc_now


@dataclass
class InAppNotification:
    id: str
    user_id: str
    title: str
    body: str
    data: dict = field(default_factory=dict)
    created_at: datetime = field(default_factory=utc_now)
    read: bool = False


class InAppAdapter(ChannelAdapter):
    channel = ChannelType.IN_APP

    def __init__(self):
        self._inbox: dict[str, list[InAppNotification]] = {}

    async def send(self, message: OutboundMessage) -> DeliveryResult:
        notification = InAppNotification(
            id=f"inapp-{uuid4().hex[:12]}",
            user_id=message.recipient,
            title=message.subject or "",
            body=message.body,
            data=dict(message.data),
        )
        self._inbox.setdefault(message.recipient, []).append(notification)
        return DeliveryResult(success=True, message_id=notification.id)

    def health_check(self) -> HealthStatus:
        return HealthStatus(healthy=True, message="In-app inbox ready")

    def notifications_for(self, user_id: str, unread_only: bool = False) -> list[InAppNotification]:
        """The user's notifications, newest first."""
        notifications = self._inbox.get(user_id, [])
        if unread_only:
            notifications = [n for n in notifications if not n.read]
        return list(reversed(notifications))

    def mark_as_read(self, user_id: str, notification_id: str) -> bool:
        for notification in self._inbox.get(user_id, []):
            if notification.id == notification_id:
                notification.read = True
                return True
        return False

    def unread_count(self, user_id: str) -> int:
        return sum(1 for n in self._inbox.get(user_id, []) if not n.read)

    def reset(self):
        self._inbox.clear()
