"""Booking snapshot consumed from the booking service.

Bookings are owned by the booking domain; the reminders context only
reads the fields it needs to schedule and render reminders.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class BookingStatus(Enum):
    CONFIRMED = "confirmed"
    PENDING = "pending"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


@dataclass(frozen=True)
class Booking:
    id: str
    scheduled_time: datetime
    status: BookingStatus = BookingStatus.CONFIRMED
    customer_name: str = ""
    customer_phone: str | None = None
    customer_email: str | None = None
    service_name: str | None = None
    barber_name: str | None = None

    @property
    def is_cancelled(self) -> bool:
        return self.status == BookingStatus.CANCELLED

    @property
    def is_schedulable(self) -> bool:
        """Only confirmed and pending bookings get reminders."""
        return self.status in (BookingStatus.CONFIRMED, BookingStatus.PENDING)

    def reminder_payload(self) -> dict:
        """Fields carried inside each reminder job for rendering."""
        return {
            "booking_id": self.id,
            "customer_name": self.customer_name,
            "customer_phone": self.customer_phone,
            "service_name": self.service_name,
            "barber_name": self.barber_name,
        }
