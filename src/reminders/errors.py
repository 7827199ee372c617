"""Delivery error taxonomy.

Adapters report failures by returning one of these errors inside a
``DeliveryResult``; the dispatch worker uses ``retryable`` to decide
between rescheduling and dead-lettering.
"""


class DeliveryError(Exception):
    """Base class for every failure a channel adapter can report."""

    retryable = False
    kind = "delivery_error"

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return self.message or self.kind


class RecipientValidationError(DeliveryError):
    """Malformed recipient (e.g. a phone number that is not E.164).

    Raised before any send attempt is made, so it never consumes a retry.
    """

    kind = "validation_error"


class ConfigurationError(DeliveryError):
    """Required credentials or settings for a channel are missing."""

    kind = "configuration_error"


class TransientDeliveryError(DeliveryError):
    """Timeouts, provider 5xx responses and provider rate limiting."""

    retryable = True
    kind = "transient_error"


class PermanentDeliveryError(DeliveryError):
    """The provider rejected the message for good (4xx-equivalent)."""

    kind = "permanent_error"

