"""WhatsApp messaging adapter over a generic HTTP messaging API.

Recipients must be E.164 numbers. Provider responses are mapped onto the
delivery error taxonomy: timeouts, transport errors, 429 and 5xx are
transient; any other 4xx is a permanent rejection.
"""

import httpx
import structlog

from reminders.channel.port import ChannelAdapter, DeliveryResult, HealthStatus, OutboundMessage, is_e164
from reminders.enums import ChannelType
from reminders.errors import (
    ConfigurationError,
    DeliveryError,
    PermanentDeliveryError,
    RecipientValidationError,
    TransientDeliveryError,
)

logger = structlog.get_logger(__name__)


class WhatsAppAdapter(ChannelAdapter):
    channel = ChannelType.WHATSAPP

    def __init__(
        self,
        account_sid: str | None,
        auth_token: str | None,
        from_number: str | None,
        api_url: str = "https://api.whatsapp.com",
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ):
        self.account_sid = account_sid
        self.auth_token = auth_token
        self.from_number = from_number
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout

        self._client = client
        self._owns_client = client is None

    @classmethod
    def from_settings(cls, settings, client: httpx.AsyncClient | None = None):
        return cls(
            account_sid=settings.WHATSAPP_ACCOUNT_SID,
            auth_token=settings.WHATSAPP_AUTH_TOKEN,
            from_number=settings.WHATSAPP_FROM_NUMBER,
            api_url=settings.WHATSAPP_API_URL,
            timeout=settings.WHATSAPP_TIMEOUT_SECONDS,
            client=client,
        )

    def _missing_credentials(self) -> list[str]:
        required = {
            "account_sid": self.account_sid,
            "auth_token": self.auth_token,
            "from_number": self.from_number,
        }
        return [name for name, value in required.items() if not value]

    def health_check(self) -> HealthStatus:
        missing = self._missing_credentials()
        if missing:
            return HealthStatus(healthy=False, message=f"Missing WhatsApp configuration: {', '.join(missing)}")
        return HealthStatus(healthy=True, message="WhatsApp service configured")

    def validate(self, message: OutboundMessage) -> DeliveryError | None:
        if not is_e164(message.recipient):
            return RecipientValidationError(
                f"Invalid phone number format: {message.recipient}. Expected E.164 (e.g. +1234567890)"
            )
        return None

    def _http(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def send(self, message: OutboundMessage) -> DeliveryResult:
        error = self.validate(message)
        if error is not None:
            return DeliveryResult(success=False, error=error)

        missing = self._missing_credentials()
        if missing:
            return DeliveryResult(
                success=False,
                error=ConfigurationError(f"Missing WhatsApp configuration: {', '.join(missing)}"),
            )

        try:
            response = await self._http().post(
                f"{self.api_url}/accounts/{self.account_sid}/messages",
                json={"from": self.from_number, "to": message.recipient, "body": message.body},
                headers={"Authorization": f"Bearer {self.auth_token}"},
                timeout=self.timeout,
            )
        except httpx.TimeoutException as exc:
            return DeliveryResult(success=False, error=TransientDeliveryError(f"WhatsApp request timed out: {exc}"))
        except httpx.TransportError as exc:
            return DeliveryResult(success=False, error=TransientDeliveryError(f"WhatsApp transport error: {exc}"))

        if response.status_code == 429 or response.status_code >= 500:
            return DeliveryResult(
                success=False,
                error=TransientDeliveryError(f"WhatsApp API returned {response.status_code}"),
            )
        if response.status_code >= 400:
            return DeliveryResult(
                success=False,
                error=PermanentDeliveryError(f"WhatsApp API rejected message ({response.status_code}): {response.text}"),
            )

        try:
            provider_id = response.json().get("id")
        except ValueError:
            provider_id = None

        logger.info("WhatsApp message sent", message_id=message.message_id, provider_message_id=provider_id)
        return DeliveryResult(success=True, message_id=provider_id)

    async def aclose(self):
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None
