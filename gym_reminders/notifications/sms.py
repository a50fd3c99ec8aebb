from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

from pydantic import BaseModel
from twilio.http.async_http_client import AsyncTwilioHttpClient
from twilio.rest import Client as TwilioClient

from gym_reminders.core import Settings, get_settings
from gym_reminders.core.validation import normalize_phone

logger = logging.getLogger(__name__)

REASON_DISABLED = "disabled"
REASON_NOT_CONFIGURED = "not-configured"
REASON_INVALID_DESTINATION = "invalid-destination"
REASON_TIMEOUT = "timeout"


class SmsSendResult(BaseModel):
    ok: bool
    reference: Optional[str] = None  # Twilio message SID
    reason: Optional[str] = None


class SmsGateway:
    """
    Twilio-backed SMS sender.

    ``send`` never raises: every outcome, including provider errors and
    timeouts, is reported through SmsSendResult so batch jobs keep going.
    """

    def __init__(self, settings: Settings | None = None, client: Any | None = None) -> None:
        self._settings = settings or get_settings()
        self._client = client

    @property
    def enabled(self) -> bool:
        return self._settings.sms_enabled

    @property
    def configured(self) -> bool:
        if not self._settings.twilio_from:
            return False
        return self._client is not None or self._settings.twilio_configured

    def _get_client(self) -> Any:
        if self._client is None:
            self._client = TwilioClient(
                self._settings.twilio_account_sid,
                self._settings.twilio_auth_token,
                http_client=AsyncTwilioHttpClient(timeout=self._settings.sms_timeout_seconds),
            )
        return self._client

    async def close(self) -> None:
        http_client = getattr(self._client, "http_client", None)
        if isinstance(http_client, AsyncTwilioHttpClient):
            await http_client.close()

    async def send(self, destination: str | None, body: str) -> SmsSendResult:
        if not self.enabled:
            return SmsSendResult(ok=False, reason=REASON_DISABLED)
        if not self.configured:
            return SmsSendResult(ok=False, reason=REASON_NOT_CONFIGURED)

        to = normalize_phone(destination, self._settings.sms_default_country)
        if to is None:
            logger.info("SMS skipped: invalid destination %r", destination)
            return SmsSendResult(ok=False, reason=REASON_INVALID_DESTINATION)

        try:
            client = self._get_client()
            message = await asyncio.wait_for(
                client.messages.create_async(
                    to=to,
                    from_=self._settings.twilio_from,
                    body=body,
                ),
                timeout=self._settings.sms_timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.warning(
                "SMS send timed out after %ss to=%s",
                self._settings.sms_timeout_seconds,
                to,
            )
            return SmsSendResult(ok=False, reason=REASON_TIMEOUT)
        except Exception as exc:
            logger.error("SMS send failed to=%s error=%s", to, exc)
            return SmsSendResult(ok=False, reason=str(exc) or exc.__class__.__name__)

        return SmsSendResult(ok=True, reference=getattr(message, "sid", None))
