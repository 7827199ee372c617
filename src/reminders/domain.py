"""Reminders bounded context - booking reminders and multi-channel alert dispatch.

Schedules delayed reminder jobs for confirmed bookings, classifies domain
alert events (low stock, expiring products, supplier order updates), and
delivers the resulting messages through Email, SMS, Push, In-App and
WhatsApp channel adapters with per-channel rate limiting and retry.
"""

import structlog
from protean.domain import Domain

reminders = Domain(name="reminders")

logger = structlog.get_logger(__name__)
