"""Repository for the NotificationPreference aggregate."""

from reminders.domain import reminders
from reminders.preference.preference import NotificationPreference


@reminders.repository(part_of=NotificationPreference)
class NotificationPreferenceRepository:
    def find_for_user(self, user_id: str) -> NotificationPreference | None:
        prefs = self._dao.query.filter(user_id=user_id).all().items
        return prefs[0] if prefs else None
