"""Alert processor: decides whether a domain event warrants an alert.

``classify`` is a pure function of the event and the processor's
thresholds; classifying the same event twice yields the same verdict.
Duplicate delivery is gated only by the event's ``processed`` flag.
"""

from dataclasses import dataclass, field

from reminders.enums import AlertEventType, ChannelType, Severity

_CRITICAL_STOCK = 5
_HIGH_STOCK = 10

_CRITICAL_DAYS = 1
_HIGH_DAYS = 3

_TIER_CHANNELS = {
    Severity.CRITICAL: frozenset({ChannelType.EMAIL, ChannelType.SMS, ChannelType.IN_APP}),
    Severity.HIGH: frozenset({ChannelType.EMAIL, ChannelType.IN_APP}),
    Severity.MEDIUM: frozenset({ChannelType.IN_APP}),
    Severity.LOW: frozenset({ChannelType.IN_APP}),
}


@dataclass(frozen=True)
class AlertVerdict:
    should_alert: bool
    severity: Severity | None = None
    channels: frozenset[ChannelType] = frozenset()
    template: str | None = None
    context: dict = field(default_factory=dict, compare=False)
    reason: str | None = None

    @classmethod
    def alert(cls, severity: Severity, template: str, context: dict):
        return cls(
            should_alert=True,
            severity=severity,
            channels=_TIER_CHANNELS[severity],
            template=template,
            context=context,
        )

    @classmethod
    def decline(cls, reason: str):
        return cls(should_alert=False, reason=reason)


def _lookup(data: dict, *keys):
    """First present key; producers send both snake_case and camelCase."""
    for key in keys:
        if data.get(key) is not None:
            return data[key]
    return None


class AlertProcessor:
    def __init__(self, low_stock_threshold: int = 20, expiration_window_days: int = 7):
        self.low_stock_threshold = low_stock_threshold
        self.expiration_window_days = expiration_window_days

        self._rules = {
            AlertEventType.LOW_STOCK.value: self._classify_low_stock,
            AlertEventType.IMMINENT_EXPIRATION.value: self._classify_expiration,
            AlertEventType.SUPPLIER_ORDER_UPDATE.value: self._classify_supplier_order,
        }

    @classmethod
    def from_settings(cls, settings):
        return cls(
            low_stock_threshold=settings.LOW_STOCK_THRESHOLD,
            expiration_window_days=settings.EXPIRATION_WINDOW_DAYS,
        )

    def classify(self, event) -> AlertVerdict:
        """Verdict for ``event``. Raises ValueError on malformed event data."""
        rule = self._rules.get(event.event_type)
        if rule is None:
            return AlertVerdict.decline(f"No alert rule for event type {event.event_type}")
        return rule(event.payload)

    # -------------------------------------------------------------------
    # Rules
    # -------------------------------------------------------------------
    def _classify_low_stock(self, data: dict) -> AlertVerdict:
        current_stock = _lookup(data, "current_stock", "currentStock")
        if current_stock is None:
            raise ValueError("low_stock event is missing current_stock")
        current_stock = int(current_stock)
        threshold = _lookup(data, "threshold")
        threshold = self.low_stock_threshold if threshold is None else int(threshold)

        if current_stock >= threshold:
            return AlertVerdict.decline(f"Stock {current_stock} is at or above threshold {threshold}")

        if current_stock < _CRITICAL_STOCK:
            severity = Severity.CRITICAL
        elif current_stock < _HIGH_STOCK:
            severity = Severity.HIGH
        else:
            severity = Severity.MEDIUM

        context = {
            "product_name": _lookup(data, "product_name", "productName") or "N/A",
            "location_name": _lookup(data, "location_name", "locationName") or "N/A",
            "current_stock": current_stock,
            "threshold": threshold,
        }
        return AlertVerdict.alert(severity, "low_stock", context)

    def _classify_expiration(self, data: dict) -> AlertVerdict:
        days = _lookup(data, "days_until_expiration", "daysUntilExpiration")
        if days is None:
            raise ValueError("imminent_expiration event is missing days_until_expiration")
        days = int(days)
        window = _lookup(data, "window_days", "windowDays")
        window = self.expiration_window_days if window is None else int(window)

        if days > window:
            return AlertVerdict.decline(f"Expiration in {days} days is outside the {window} day window")

        if days <= _CRITICAL_DAYS:
            severity = Severity.CRITICAL
        elif days <= _HIGH_DAYS:
            severity = Severity.HIGH
        else:
            severity = Severity.MEDIUM

        context = {
            "product_name": _lookup(data, "product_name", "productName") or "N/A",
            "location_name": _lookup(data, "location_name", "locationName") or "N/A",
            "days_until_expiration": days,
        }
        return AlertVerdict.alert(severity, "imminent_expiration", context)

    def _classify_supplier_order(self, data: dict) -> AlertVerdict:
        status = str(_lookup(data, "status") or "").upper()

        if status == "DELAYED":
            severity = Severity.HIGH
        elif status == "SHIPPED":
            severity = Severity.LOW
        else:
            return AlertVerdict.decline(f"Supplier order status {status or 'unknown'} needs no alert")

        context = {
            "order_number": _lookup(data, "order_number", "orderNumber") or "N/A",
            "status": status,
            "expected_date": _lookup(data, "expected_date", "expectedDate"),
        }
        return AlertVerdict.alert(severity, "supplier_order_update", context)
