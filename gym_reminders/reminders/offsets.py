from __future__ import annotations

import re

from pydantic import BaseModel, ConfigDict, field_validator

_FLAG_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class ReminderOffset(BaseModel):
    """
    One reminder stage: remind ``days`` before expiry, track it under
    ``memberships.reminders[flag]`` and render ``template_key``.
    """

    model_config = ConfigDict(frozen=True)

    days: int
    flag: str
    template_key: str

    @field_validator("days")
    @classmethod
    def _check_days(cls, value: int) -> int:
        if value < 0:
            raise ValueError("Reminder offset must not be negative")
        return value

    @field_validator("flag")
    @classmethod
    def _check_flag(cls, value: str) -> str:
        if not _FLAG_NAME.match(value):
            raise ValueError(f"Invalid reminder flag name: {value!r}")
        return value


DEFAULT_REMINDER_OFFSETS: tuple[ReminderOffset, ...] = (
    ReminderOffset(days=7, flag="sevenDay", template_key="reminder_7d"),
    ReminderOffset(days=3, flag="threeDay", template_key="reminder_3d"),
)
