"""Enumerations shared across the reminders context."""

from enum import Enum


class ChannelType(Enum):
    EMAIL = "email"
    SMS = "sms"
    PUSH = "push"
    IN_APP = "in_app"
    WHATSAPP = "whatsapp"


class Severity(Enum):
    """Alert priority on the ordinal scale low < medium < high < critical."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANKS[self]


_SEVERITY_RANKS = {
    Severity.LOW: 0,
    Severity.MEDIUM: 1,
    Severity.HIGH: 2,
    Severity.CRITICAL: 3,
}


def severity_rank(value: str | Severity) -> int:
    """Return the ordinal rank of a severity given as enum or string value."""
    if isinstance(value, Severity):
        return value.rank
    return Severity(value.lower()).rank


class AlertEventType(Enum):
    LOW_STOCK = "low_stock"
    IMMINENT_EXPIRATION = "imminent_expiration"
    SUPPLIER_ORDER_UPDATE = "supplier_order_update"
