"""Template registry: maps template names to template classes.

Each template knows its default channels and how to render a subject and
body from context data. Rendering is pure: anything time-dependent reads
``now`` from the context.
"""

from reminders.enums import ChannelType
from reminders.templates.booking_cancellation import BookingCancellationTemplate
from reminders.templates.booking_reminder import BookingReminderTemplate
from reminders.templates.imminent_expiration import ImminentExpirationTemplate
from reminders.templates.low_stock import LowStockTemplate
from reminders.templates.supplier_order_update import SupplierOrderUpdateTemplate

SMS_MAX_LENGTH = 160

TEMPLATE_REGISTRY: dict[str, type] = {
    BookingReminderTemplate.name: BookingReminderTemplate,
    BookingCancellationTemplate.name: BookingCancellationTemplate,
    LowStockTemplate.name: LowStockTemplate,
    ImminentExpirationTemplate.name: ImminentExpirationTemplate,
    SupplierOrderUpdateTemplate.name: SupplierOrderUpdateTemplate,
}


def get_template(name: str):
    """Look up a template class by name."""
    template_cls = TEMPLATE_REGISTRY.get(name)
    if template_cls is None:
        raise ValueError(f"No template registered for name: {name}")
    return template_cls


def render_message(name: str, context: dict, channel: ChannelType | str) -> dict:
    """Render ``name`` for ``channel``; SMS bodies are cut to one segment."""
    content = get_template(name).render(context)
    if ChannelType(channel) == ChannelType.SMS and len(content["body"]) > SMS_MAX_LENGTH:
        content["body"] = content["body"][: SMS_MAX_LENGTH - 3] + "..."
    return content
