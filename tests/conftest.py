from datetime import datetime
from zoneinfo import ZoneInfo

import pytest

from gym_reminders.core import Settings

from tests.helpers import FakeGateway, FakeStore

IST = ZoneInfo("Asia/Kolkata")


@pytest.fixture
def make_settings():
    def _make(**overrides) -> Settings:
        values = {
            "supabase_url": "https://example.supabase.co",
            "supabase_service_key": "service-key",
            "gym_name": "Iron Temple",
            "sms_enabled": True,
            "twilio_account_sid": "AC123",
            "twilio_auth_token": "token",
            "twilio_from": "+15005550006",
        }
        values.update(overrides)
        return Settings(**values)

    return _make


@pytest.fixture
def settings(make_settings):
    return make_settings()


@pytest.fixture
def now():
    return datetime(2026, 10, 19, 10, 0, tzinfo=IST)


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def gateway():
    return FakeGateway()
