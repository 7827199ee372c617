"""Booking cancellation template: confirms a cancelled appointment."""

from reminders.enums import ChannelType
from reminders.templates.formatting import format_datetime


class BookingCancellationTemplate:
    name = "booking_cancellation"
    default_channels = [ChannelType.WHATSAPP.value]

    @staticmethod
    def render(context: dict) -> dict:
        customer_name = context.get("customer_name") or "there"
        scheduled_time = format_datetime(context.get("scheduled_time"))
        return {
            "subject": "Appointment Cancelled",
            "body": (
                f"Hello {customer_name},\n\n"
                f"Your appointment scheduled for {scheduled_time} has been cancelled.\n\n"
                "If this was a mistake, please contact us to reschedule.\n\n"
                "Thank you!"
            ),
        }
