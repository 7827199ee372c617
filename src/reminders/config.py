from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

from reminders.enums import ChannelType


class DispatchSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="REMINDERS_")

    # Reminder cadence
    REMINDER_INTERVAL_SECONDS: int = 2 * 60 * 60
    MIN_LEAD_SECONDS: int = 2 * 60 * 60
    REMINDER_CHANNEL: ChannelType = ChannelType.WHATSAPP

    # Retry policy
    MAX_RETRIES: int = 3
    BACKOFF_BASE_SECONDS: float = 2.0
    BACKOFF_MAX_SECONDS: float = 300.0

    # Worker
    WORKER_CONCURRENCY: int = 5
    WORKER_BATCH_SIZE: int = 10
    WORKER_POLL_INTERVAL_SECONDS: float = 5.0

    # Minimum spacing between two sends on the same channel
    EMAIL_MIN_SPACING_SECONDS: float = 0.0
    SMS_MIN_SPACING_SECONDS: float = 0.0
    PUSH_MIN_SPACING_SECONDS: float = 0.0
    IN_APP_MIN_SPACING_SECONDS: float = 0.0
    WHATSAPP_MIN_SPACING_SECONDS: float = 1.0

    # Alert thresholds
    LOW_STOCK_THRESHOLD: int = 20
    EXPIRATION_WINDOW_DAYS: int = 7

    # WhatsApp provider
    WHATSAPP_ACCOUNT_SID: Optional[str] = None
    WHATSAPP_AUTH_TOKEN: Optional[str] = None
    WHATSAPP_FROM_NUMBER: Optional[str] = None
    WHATSAPP_API_URL: str = "https://api.whatsapp.com"
    WHATSAPP_TIMEOUT_SECONDS: float = 10.0

    # Email
    EMAIL_FROM_ADDRESS: Optional[str] = "noreply@barberbooking.com"

    def channel_spacing(self) -> dict[ChannelType, float]:
        """Per-channel minimum inter-send spacing in seconds."""
        return {
            ChannelType.EMAIL: self.EMAIL_MIN_SPACING_SECONDS,
            ChannelType.SMS: self.SMS_MIN_SPACING_SECONDS,
            ChannelType.PUSH: self.PUSH_MIN_SPACING_SECONDS,
            ChannelType.IN_APP: self.IN_APP_MIN_SPACING_SECONDS,
            ChannelType.WHATSAPP: self.WHATSAPP_MIN_SPACING_SECONDS,
        }
