"""Imminent expiration alert template."""

from reminders.enums import ChannelType


class ImminentExpirationTemplate:
    name = "imminent_expiration"
    default_channels = [ChannelType.IN_APP.value]

    @staticmethod
    def render(context: dict) -> dict:
        product_name = context.get("product_name", "N/A")
        location_name = context.get("location_name", "N/A")
        days = context.get("days_until_expiration", "N/A")
        return {
            "subject": f"Impending Expiration: {product_name}",
            "body": f'Product "{product_name}" at {location_name} will expire in {days} day(s)',
        }
