"""Preference filter: narrows an alert's candidate channels to the user's choice."""

from datetime import datetime

from reminders.enums import ChannelType, Severity


def resolve_channels(event, verdict, preference, now: datetime | None = None) -> set[ChannelType]:
    """Channels an alert should actually go out on.

    A channel survives only if the processor proposed it, the user enabled
    it, the user receives this event type, and the alert's severity is at
    or above the user's minimum priority. Outside critical alerts, nothing
    goes out during the user's quiet hours. Missing preferences resolve to
    the empty set.
    """
    if preference is None or not verdict.should_alert:
        return set()

    if not preference.is_subscribed_to(event.event_type):
        return set()

    if not preference.accepts_severity(verdict.severity):
        return set()

    if now is not None and verdict.severity != Severity.CRITICAL and preference.in_quiet_hours(now):
        return set()

    enabled = preference.enabled_channels()
    return {ChannelType(channel) for channel in verdict.channels} & enabled
