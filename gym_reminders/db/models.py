from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator


class MembershipStatus(str, Enum):
    ACTIVE = "active"
    EXPIRED = "expired"
    SUSPENDED = "suspended"
    UPGRADED = "upgraded"


class Member(BaseModel):
    # Row of the `users` table owned by the member-management API
    id: str
    user_code: Optional[str] = None  # Human-facing member id, e.g. "GYM-0042"
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    mobile: Optional[str] = None


class Pack(BaseModel):
    id: str
    name: Optional[str] = None


class Membership(BaseModel):
    id: str
    user_id: Optional[str] = None
    pack_id: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None  # None for session-based packs
    status: MembershipStatus = MembershipStatus.ACTIVE
    reminders: dict[str, bool] = Field(default_factory=dict)

    @field_validator("reminders", mode="before")
    @classmethod
    def _keep_boolean_flags(cls, value: Any) -> Any:
        if value is None:
            return {}
        if isinstance(value, dict):
            # the document also carries non-flag keys such as sentAt
            return {key: flag for key, flag in value.items() if isinstance(flag, bool)}
        return value

    def reminder_sent(self, flag: str) -> bool:
        return self.reminders.get(flag) is True


class MembershipDetails(BaseModel):
    """
    Membership row together with its embedded member and pack.
    """

    membership: Membership
    member: Optional[Member] = None
    pack: Optional[Pack] = None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "MembershipDetails":
        row = dict(row)
        member = row.pop("member", None)
        pack = row.pop("pack", None)
        return cls(
            membership=Membership.model_validate(row),
            member=Member.model_validate(member) if member else None,
            pack=Pack.model_validate(pack) if pack else None,
        )
