"""Supplier order update template."""

from reminders.enums import ChannelType


class SupplierOrderUpdateTemplate:
    name = "supplier_order_update"
    default_channels = [ChannelType.IN_APP.value]

    @staticmethod
    def render(context: dict) -> dict:
        order_number = context.get("order_number", "N/A")
        status = context.get("status", "N/A")
        body = f"Order {order_number} status updated to {status}"
        if context.get("expected_date"):
            body += f"\nExpected delivery: {context['expected_date']}"
        return {
            "subject": f"Supplier Order Update: {order_number}",
            "body": body,
        }
