"""Domain events for the NotificationPreference aggregate."""

from protean.fields import DateTime, Identifier, String, Text

from reminders.domain import reminders


@reminders.event(part_of="NotificationPreference")
class PreferencesCreated:
    """Notification preferences were created for a user."""

    __version__ = 1

    preference_id: Identifier(required=True)
    user_id: Identifier(required=True)
    channels: Text(required=True, sanitize=False)  # JSON
    min_priority: String(required=True)
    created_at: DateTime(required=True)


@reminders.event(part_of="NotificationPreference")
class ChannelsUpdated:
    """A user's enabled channels were changed."""

    __version__ = 1

    preference_id: Identifier(required=True)
    user_id: Identifier(required=True)
    channels: Text(required=True, sanitize=False)  # JSON
    updated_at: DateTime(required=True)


@reminders.event(part_of="NotificationPreference")
class EventTypesUpdated:
    """A user changed which alert types they receive. Empty means all."""

    __version__ = 1

    preference_id: Identifier(required=True)
    user_id: Identifier(required=True)
    event_types: Text(required=True, sanitize=False)  # JSON list
    updated_at: DateTime(required=True)


@reminders.event(part_of="NotificationPreference")
class MinPriorityChanged:
    """A user changed the lowest severity they want to be alerted for."""

    __version__ = 1

    preference_id: Identifier(required=True)
    user_id: Identifier(required=True)
    min_priority: String(required=True)
    updated_at: DateTime(required=True)


@reminders.event(part_of="NotificationPreference")
class ContactDetailsUpdated:
    __version__ = 1

    preference_id: Identifier(required=True)
    user_id: Identifier(required=True)
    updated_at: DateTime(required=True)


@reminders.event(part_of="NotificationPreference")
class QuietHoursSet:
    """A user set their do-not-disturb window."""

    __version__ = 1

    preference_id: Identifier(required=True)
    user_id: Identifier(required=True)
    start: String(required=True)
    end: String(required=True)
    updated_at: DateTime(required=True)


@reminders.event(part_of="NotificationPreference")
class QuietHoursCleared:
    """A user removed their do-not-disturb window."""

    __version__ = 1

    preference_id: Identifier(required=True)
    user_id: Identifier(required=True)
    cleared_at: DateTime(required=True)
