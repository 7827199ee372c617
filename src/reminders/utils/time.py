from datetime import UTC, datetime


def utc_now() -> datetime:
    return datetime.now(UTC)


def as_aware(value: datetime) -> datetime:
    """Normalize a stored datetime to UTC-aware for comparison."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value
