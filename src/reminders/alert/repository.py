"""Repository for the NotificationEvent aggregate."""

from protean.exceptions import ObjectNotFoundError

from reminders.alert.notification_event import NotificationEvent
from reminders.domain import reminders


@reminders.repository(part_of=NotificationEvent)
class NotificationEventRepository:
    def find(self, event_id: str) -> NotificationEvent | None:
        try:
            return self.get(event_id)
        except ObjectNotFoundError:
            return None

    def find_unprocessed(self) -> list[NotificationEvent]:
        return self._dao.query.filter(processed=False).all().items
