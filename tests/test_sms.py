import asyncio
import logging

from gym_reminders.notifications.sms import SmsGateway

from tests.helpers import FakeTwilioClient


def test_disabled_gateway_contacts_nothing(make_settings):
    client = FakeTwilioClient()
    gateway = SmsGateway(make_settings(sms_enabled=False), client=client)

    result = asyncio.run(gateway.send("9876543210", "hello"))

    assert result.ok is False
    assert result.reason == "disabled"
    assert client.messages.created == []


def test_missing_credentials_is_not_configured(make_settings):
    gateway = SmsGateway(make_settings(twilio_auth_token=None))

    result = asyncio.run(gateway.send("9876543210", "hello"))

    assert result.ok is False
    assert result.reason == "not-configured"


def test_missing_sender_number_is_not_configured(make_settings):
    gateway = SmsGateway(make_settings(twilio_from=None), client=FakeTwilioClient())

    assert gateway.configured is False


def test_full_credentials_are_configured(settings):
    assert SmsGateway(settings).configured is True


def test_invalid_destination_skips_gateway(settings):
    client = FakeTwilioClient()
    gateway = SmsGateway(settings, client=client)

    result = asyncio.run(gateway.send("123", "hello"))

    assert result.ok is False
    assert result.reason == "invalid-destination"
    assert client.messages.created == []


def test_successful_send_returns_reference(settings):
    client = FakeTwilioClient()
    gateway = SmsGateway(settings, client=client)

    result = asyncio.run(gateway.send("09876543210", "hello"))

    assert result.ok is True
    assert result.reference == "SM0001"
    assert client.messages.created == [
        {"to": "+919876543210", "from_": "+15005550006", "body": "hello"}
    ]


def test_provider_error_is_reported_not_raised(settings, caplog):
    gateway = SmsGateway(settings, client=FakeTwilioClient(error=RuntimeError("queue overflow")))

    with caplog.at_level(logging.ERROR):
        result = asyncio.run(gateway.send("9876543210", "hello"))

    assert result.ok is False
    assert result.reason == "queue overflow"
    assert "queue overflow" in caplog.text


def test_slow_provider_times_out(make_settings):
    gateway = SmsGateway(make_settings(sms_timeout_seconds=0.01), client=FakeTwilioClient(delay=1))

    result = asyncio.run(gateway.send("9876543210", "hello"))

    assert result.ok is False
    assert result.reason == "timeout"
