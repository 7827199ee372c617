"""Low stock alert template."""

from reminders.enums import ChannelType


class LowStockTemplate:
    name = "low_stock"
    default_channels = [ChannelType.IN_APP.value]

    @staticmethod
    def render(context: dict) -> dict:
        product_name = context.get("product_name", "N/A")
        location_name = context.get("location_name", "N/A")
        current_stock = context.get("current_stock", 0)
        threshold = context.get("threshold", "N/A")
        return {
            "subject": f"Low Stock Alert: {product_name}",
            "body": (
                f'Product "{product_name}" at {location_name} has only {current_stock} units remaining '
                f"(threshold: {threshold})"
            ),
        }
