"""Booking reminder template: sent ahead of an appointment."""

from reminders.enums import ChannelType
from reminders.templates.formatting import format_datetime, time_until


class BookingReminderTemplate:
    name = "booking_reminder"
    default_channels = [ChannelType.WHATSAPP.value]

    @staticmethod
    def render(context: dict) -> dict:
        customer_name = context.get("customer_name") or "there"
        scheduled_time = context.get("scheduled_time")

        lines = [
            f"Hello {customer_name}!",
            "",
            "This is a reminder about your upcoming appointment.",
            "",
            f"Date & Time: {format_datetime(scheduled_time)}",
        ]
        if context.get("service_name"):
            lines.append(f"Service: {context['service_name']}")
        if context.get("barber_name"):
            lines.append(f"Barber: {context['barber_name']}")
        lines += [
            "",
            time_until(scheduled_time, context.get("now")),
            "",
            "Please arrive 5-10 minutes early.",
            "Reply CANCEL to cancel this appointment.",
            "",
            "We look forward to seeing you!",
        ]

        return {
            "subject": "Appointment Reminder",
            "body": "\n".join(lines),
        }
