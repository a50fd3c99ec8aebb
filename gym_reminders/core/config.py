from __future__ import annotations

import os
from functools import lru_cache
from typing import Literal
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv
from pydantic import BaseModel, HttpUrl, ValidationError, field_validator

from .validation import COUNTRY_CALLING_CODES


class Settings(BaseModel):
    supabase_url: HttpUrl
    supabase_service_key: str
    environment: Literal["local", "staging", "production"] = "local"

    gym_name: str = "Your Gym"

    # SMS gateway (Twilio)
    sms_enabled: bool = False
    twilio_account_sid: str | None = None
    twilio_auth_token: str | None = None
    twilio_from: str | None = None
    sms_default_country: str = "IN"
    sms_timeout_seconds: float = 8.0

    # Daily reminder trigger
    reminder_timezone: str = "Asia/Kolkata"
    reminder_hour: int = 9
    reminder_minute: int = 15
    reminder_date_format: str = "%d/%m/%Y"

    # Optional Telegram admin bot
    admin_bot_token: str | None = None
    admin_telegram_ids: frozenset[int] = frozenset()

    @field_validator("sms_default_country")
    @classmethod
    def _check_country(cls, value: str) -> str:
        value = value.strip().upper()
        if value not in COUNTRY_CALLING_CODES:
            raise ValueError(f"Unsupported SMS default country: {value}")
        return value

    @field_validator("reminder_timezone")
    @classmethod
    def _check_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"Unknown timezone: {value}") from exc
        return value

    @field_validator("reminder_hour")
    @classmethod
    def _check_hour(cls, value: int) -> int:
        if not 0 <= value <= 23:
            raise ValueError("reminder_hour must be between 0 and 23")
        return value

    @field_validator("reminder_minute")
    @classmethod
    def _check_minute(cls, value: int) -> int:
        if not 0 <= value <= 59:
            raise ValueError("reminder_minute must be between 0 and 59")
        return value

    @field_validator("sms_timeout_seconds")
    @classmethod
    def _check_timeout(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("sms_timeout_seconds must be positive")
        return value

    @property
    def is_debug(self) -> bool:
        return self.environment == "local"

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.reminder_timezone)

    @property
    def twilio_configured(self) -> bool:
        return bool(self.twilio_account_sid and self.twilio_auth_token and self.twilio_from)


def _env_flag(name: str) -> bool:
    return os.getenv(name, "").strip().lower() in ("1", "true", "yes", "on")


def _env_ids(name: str) -> frozenset[int]:
    raw = os.getenv(name, "")
    return frozenset(int(part) for part in raw.replace(" ", "").split(",") if part)


def _build_settings() -> Settings:
    # Load .env file once on first settings build (for local development)
    load_dotenv()

    try:
        return Settings(
            supabase_url=os.environ["SUPABASE_URL"],
            supabase_service_key=os.environ["SUPABASE_SERVICE_KEY"],
            environment=os.getenv("ENVIRONMENT", "local"),
            gym_name=os.getenv("GYM_NAME") or "Your Gym",
            sms_enabled=_env_flag("SMS_ENABLED"),
            twilio_account_sid=os.getenv("TWILIO_ACCOUNT_SID") or None,
            twilio_auth_token=os.getenv("TWILIO_AUTH_TOKEN") or None,
            twilio_from=os.getenv("TWILIO_FROM") or None,
            sms_default_country=os.getenv("SMS_DEFAULT_COUNTRY", "IN"),
            sms_timeout_seconds=float(os.getenv("SMS_TIMEOUT_SECONDS", "8")),
            reminder_timezone=os.getenv("REMINDER_TIMEZONE", "Asia/Kolkata"),
            reminder_hour=int(os.getenv("REMINDER_HOUR", "9")),
            reminder_minute=int(os.getenv("REMINDER_MINUTE", "15")),
            reminder_date_format=os.getenv("REMINDER_DATE_FORMAT", "%d/%m/%Y"),
            admin_bot_token=os.getenv("ADMIN_BOT_TOKEN") or None,
            admin_telegram_ids=_env_ids("ADMIN_TELEGRAM_IDS"),
        )
    except KeyError as exc:
        required_keys = ("SUPABASE_URL", "SUPABASE_SERVICE_KEY")
        missing = [key for key in required_keys if key not in os.environ]
        raise RuntimeError(
            f"Missing required environment variables: {', '.join(missing)}"
        ) from exc
    except (ValidationError, ValueError) as exc:
        raise RuntimeError(f"Invalid settings: {exc}") from exc


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Cached accessor for application settings.

    Reads environment variables once and validates them with Pydantic.
    """

    return _build_settings()
