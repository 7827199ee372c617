"""Repository for the Message aggregate."""

from protean.exceptions import ObjectNotFoundError

from reminders.domain import reminders
from reminders.message.message import Message, MessageStatus


@reminders.repository(part_of=Message)
class MessageRepository:
    def find(self, message_id: str) -> Message | None:
        try:
            return self.get(message_id)
        except ObjectNotFoundError:
            return None

    def find_by_status(self, status: MessageStatus) -> list[Message]:
        """Messages in ``status``, oldest first."""
        return self._dao.query.filter(status=status.value).order_by("created_at").all().items
