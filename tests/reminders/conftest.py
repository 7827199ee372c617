import json
from datetime import UTC, datetime, timedelta

import httpx
import pytest
from protean import current_domain
from protean.integrations.pytest import DomainFixture


@pytest.fixture(scope="session")
def reminders_bed():
    from reminders.domain import reminders

    bed = DomainFixture(reminders)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(reminders_bed):
    with reminders_bed.domain_context():
        yield

        for _, provider in current_domain.providers.items():
            provider._data_reset()
        current_domain.event_store.store._data_reset()


class FakeClock:
    """Settable clock; tests move time forward explicitly."""

    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture()
def clock():
    return FakeClock(datetime(2025, 6, 2, 9, 0, tzinfo=UTC))


@pytest.fixture()
def settings():
    from reminders.config import DispatchSettings

    return DispatchSettings(
        WHATSAPP_ACCOUNT_SID="AC-test",
        WHATSAPP_AUTH_TOKEN="token-test",
        WHATSAPP_FROM_NUMBER="+15550000000",
        WHATSAPP_API_URL="https://whatsapp.test",
        WHATSAPP_MIN_SPACING_SECONDS=0.0,
    )


@pytest.fixture()
def whatsapp_requests():
    """Bodies of every request the WhatsApp adapter made."""
    return []


@pytest.fixture()
def whatsapp_client(whatsapp_requests):
    def handler(request: httpx.Request) -> httpx.Response:
        whatsapp_requests.append(json.loads(request.content))
        return httpx.Response(201, json={"id": f"wa-{len(whatsapp_requests)}"})

    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.fixture()
def engine(settings, clock, whatsapp_client):
    from reminders.engine import NotificationEngine

    return NotificationEngine(settings, clock=clock, http_client=whatsapp_client)
