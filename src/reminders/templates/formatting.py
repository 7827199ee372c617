"""Shared helpers for rendering dates in message bodies."""

from datetime import datetime

from reminders.utils.time import as_aware


def parse_datetime(value) -> datetime | None:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value))


def format_datetime(value) -> str:
    """e.g. ``Monday, January 15, 2024 at 02:30 PM``."""
    moment = parse_datetime(value)
    if moment is None:
        return "N/A"
    return moment.strftime("%A, %B %d, %Y at %I:%M %p")


def time_until(scheduled, now) -> str:
    scheduled, now = parse_datetime(scheduled), parse_datetime(now)
    if scheduled is None or now is None:
        return "Your appointment is coming up soon"

    hours = int((as_aware(scheduled) - as_aware(now)).total_seconds() // 3600)
    days = hours // 24

    if days > 1:
        return f"Your appointment is in {days} days"
    if days == 1:
        return "Your appointment is tomorrow"
    if hours > 1:
        return f"Your appointment is in {hours} hours"
    return "Your appointment is coming up soon"
