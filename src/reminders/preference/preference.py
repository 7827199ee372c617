"""NotificationPreference aggregate: a user's alert channel preferences.

Holds which channel types are enabled, which alert event types the user
receives (an empty list means all of them), the minimum severity worth
alerting for, an optional quiet hours window, and the contact details
each channel delivers to.
"""

import json
from datetime import UTC, datetime, time
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from protean.exceptions import ValidationError
from protean.fields import DateTime, Identifier, String, Text

from reminders.domain import reminders
from reminders.enums import ChannelType, Severity, severity_rank
from reminders.preference.events import (
    ChannelsUpdated,
    ContactDetailsUpdated,
    EventTypesUpdated,
    MinPriorityChanged,
    PreferencesCreated,
    QuietHoursCleared,
    QuietHoursSet,
)
from reminders.utils.time import as_aware


def _parse_hhmm(label, value) -> time:
    parts = value.split(":") if value else []
    if len(parts) != 2:
        raise ValidationError({f"quiet_hours_{label}": [f"Invalid time format: {value}. Use HH:MM"]})
    try:
        return time(int(parts[0]), int(parts[1]))
    except ValueError:
        raise ValidationError({f"quiet_hours_{label}": [f"Invalid time format: {value}. Use HH:MM"]}) from None


def _normalize_channels(channels) -> dict[str, bool]:
    try:
        return {ChannelType(channel).value: bool(enabled) for channel, enabled in channels.items()}
    except ValueError as exc:
        raise ValidationError({"channels": [str(exc)]}) from None


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@reminders.aggregate
class NotificationPreference:
    # User link
    user_id: Identifier(required=True, unique=True)

    # Contact details per channel
    email: String(max_length=255, sanitize=False)
    phone_number: String(max_length=20)
    device_token: String(max_length=255)

    # Filters
    channels: Text(sanitize=False)  # JSON object: channel type -> enabled
    event_types: Text(sanitize=False)  # JSON list; empty means all event types
    min_priority: String(choices=Severity, default=Severity.LOW.value)

    # Quiet hours (DND)
    quiet_hours_start: String(max_length=5)  # "22:00" format
    quiet_hours_end: String(max_length=5)  # "08:00" format
    timezone: String(max_length=50, default="UTC")

    # Timestamps
    created_at: DateTime()
    updated_at: DateTime()

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def create(
        cls,
        user_id,
        channels=None,
        event_types=None,
        min_priority=Severity.LOW.value,
        email=None,
        phone_number=None,
        device_token=None,
        timezone="UTC",
    ):
        """Create preferences for a user.

        Default: only the in-app channel enabled, every event type, every
        severity.
        """
        channel_map = _normalize_channels(channels if channels is not None else {ChannelType.IN_APP: True})
        now = datetime.now(UTC)

        preference = cls(
            user_id=user_id,
            email=email,
            phone_number=phone_number,
            device_token=device_token,
            channels=json.dumps(channel_map),
            event_types=json.dumps(list(event_types or [])),
            min_priority=Severity(min_priority).value,
            timezone=timezone,
            created_at=now,
            updated_at=now,
        )

        preference.raise_(
            PreferencesCreated(
                preference_id=str(preference.id),
                user_id=str(user_id),
                channels=preference.channels,
                min_priority=preference.min_priority,
                created_at=now,
            )
        )

        return preference

    # -------------------------------------------------------------------
    # Channel management
    # -------------------------------------------------------------------
    def update_channels(self, updates):
        """Enable or disable channels. ``updates`` maps channel type to a bool."""
        if not updates:
            raise ValidationError({"channels": ["At least one channel preference must be provided"]})

        channel_map = json.loads(self.channels) if self.channels else {}
        channel_map.update(_normalize_channels(updates))

        now = datetime.now(UTC)
        self.channels = json.dumps(channel_map)
        self.updated_at = now

        self.raise_(
            ChannelsUpdated(
                preference_id=str(self.id),
                user_id=str(self.user_id),
                channels=self.channels,
                updated_at=now,
            )
        )

    def set_event_types(self, event_types):
        now = datetime.now(UTC)
        self.event_types = json.dumps(list(event_types))
        self.updated_at = now

        self.raise_(
            EventTypesUpdated(
                preference_id=str(self.id),
                user_id=str(self.user_id),
                event_types=self.event_types,
                updated_at=now,
            )
        )

    def set_min_priority(self, min_priority):
        try:
            severity = Severity(min_priority)
        except ValueError:
            raise ValidationError({"min_priority": [f"Unknown priority: {min_priority}"]}) from None

        now = datetime.now(UTC)
        self.min_priority = severity.value
        self.updated_at = now

        self.raise_(
            MinPriorityChanged(
                preference_id=str(self.id),
                user_id=str(self.user_id),
                min_priority=severity.value,
                updated_at=now,
            )
        )

    def update_contact(self, email=None, phone_number=None, device_token=None):
        """Update contact details. Pass None to keep unchanged."""
        if email is None and phone_number is None and device_token is None:
            raise ValidationError({"contact": ["At least one contact detail must be provided"]})

        if email is not None:
            self.email = email
        if phone_number is not None:
            self.phone_number = phone_number
        if device_token is not None:
            self.device_token = device_token

        now = datetime.now(UTC)
        self.updated_at = now

        self.raise_(ContactDetailsUpdated(preference_id=str(self.id), user_id=str(self.user_id), updated_at=now))

    # -------------------------------------------------------------------
    # Quiet hours
    # -------------------------------------------------------------------
    def set_quiet_hours(self, start, end, timezone=None):
        """Set do-not-disturb window. Windows may span midnight."""
        if not start or not end:
            raise ValidationError({"quiet_hours": ["Both start and end times are required"]})

        _parse_hhmm("start", start)
        _parse_hhmm("end", end)

        if timezone is not None:
            try:
                ZoneInfo(timezone)
            except (ZoneInfoNotFoundError, ValueError):
                raise ValidationError({"timezone": [f"Unknown timezone: {timezone}"]}) from None
            self.timezone = timezone

        now = datetime.now(UTC)
        self.quiet_hours_start = start
        self.quiet_hours_end = end
        self.updated_at = now

        self.raise_(
            QuietHoursSet(
                preference_id=str(self.id),
                user_id=str(self.user_id),
                start=start,
                end=end,
                updated_at=now,
            )
        )

    def clear_quiet_hours(self):
        now = datetime.now(UTC)
        self.quiet_hours_start = None
        self.quiet_hours_end = None
        self.updated_at = now

        self.raise_(
            QuietHoursCleared(
                preference_id=str(self.id),
                user_id=str(self.user_id),
                cleared_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Query helpers
    # -------------------------------------------------------------------
    def enabled_channels(self) -> set[ChannelType]:
        channel_map = json.loads(self.channels) if self.channels else {}
        return {ChannelType(channel) for channel, enabled in channel_map.items() if enabled}

    def channel_enabled(self, channel) -> bool:
        return ChannelType(channel) in self.enabled_channels()

    def is_subscribed_to(self, event_type) -> bool:
        types = json.loads(self.event_types) if self.event_types else []
        return not types or getattr(event_type, "value", event_type) in types

    def accepts_severity(self, severity) -> bool:
        return severity_rank(severity) >= severity_rank(self.min_priority or Severity.LOW)

    def in_quiet_hours(self, now: datetime) -> bool:
        if not self.quiet_hours_start or not self.quiet_hours_end:
            return False

        start = _parse_hhmm("start", self.quiet_hours_start)
        end = _parse_hhmm("end", self.quiet_hours_end)
        local = as_aware(now).astimezone(ZoneInfo(self.timezone or "UTC")).time().replace(second=0, microsecond=0)

        if start <= end:
            return start <= local < end
        # Overnight window, e.g. 22:00-08:00
        return local >= start or local < end

    def recipient_for(self, channel) -> str | None:
        """The address a channel delivers to for this user, if known."""
        channel = ChannelType(channel)
        if channel == ChannelType.EMAIL:
            return self.email
        if channel in (ChannelType.SMS, ChannelType.WHATSAPP):
            return self.phone_number
        if channel == ChannelType.PUSH:
            return self.device_token
        return str(self.user_id)
