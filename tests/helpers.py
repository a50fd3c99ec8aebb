from __future__ import annotations

import asyncio
from datetime import datetime
from types import SimpleNamespace
from typing import Any

from gym_reminders.db.models import Member, MembershipDetails
from gym_reminders.notifications.sms import SmsSendResult


class FakeStore:
    """
    In-memory stand-in for SupabaseClient.

    ``list_reminder_candidates`` returns every membership so the policy's
    own eligibility check is what gets exercised.
    """

    def __init__(self, overrides: dict[str, str] | None = None) -> None:
        self.members: dict[str, dict[str, Any]] = {}
        self.packs: dict[str, dict[str, Any]] = {}
        self.memberships: dict[str, dict[str, Any]] = {}
        self.overrides = overrides or {}
        self.mark_calls: list[tuple[str, str]] = []
        self.claims: set[tuple[str, str]] = set()
        self.released: list[tuple[str, str]] = []

    def add_member(self, member_id: str, *, first_name: str | None = "Asha", mobile: str | None = "9876543210", user_code: str | None = None) -> None:
        self.members[member_id] = {
            "id": member_id,
            "user_code": user_code or f"GYM-{member_id}",
            "first_name": first_name,
            "mobile": mobile,
        }

    def add_pack(self, pack_id: str, name: str = "Quarterly Pack") -> None:
        self.packs[pack_id] = {"id": pack_id, "name": name}

    def add_membership(
        self,
        membership_id: str,
        *,
        user_id: str,
        pack_id: str | None = None,
        end_date: datetime | None,
        start_date: datetime | None = None,
        status: str = "active",
        reminders: dict[str, bool] | None = None,
    ) -> None:
        self.memberships[membership_id] = {
            "id": membership_id,
            "user_id": user_id,
            "pack_id": pack_id,
            "start_date": start_date,
            "end_date": end_date,
            "status": status,
            "reminders": dict(reminders or {}),
        }

    def _details(self, row: dict[str, Any]) -> MembershipDetails:
        return MembershipDetails.from_row(
            {
                **row,
                "reminders": dict(row["reminders"]),
                "member": self.members.get(row["user_id"]),
                "pack": self.packs.get(row["pack_id"]),
            }
        )

    def flag(self, membership_id: str, flag: str) -> bool:
        return self.memberships[membership_id]["reminders"].get(flag) is True

    async def list_reminder_candidates(self, *, start: datetime, end: datetime, flag: str) -> list[MembershipDetails]:
        return [self._details(row) for row in self.memberships.values()]

    async def get_membership_details(self, membership_id: str) -> MembershipDetails | None:
        row = self.memberships.get(membership_id)
        return self._details(row) if row else None

    async def claim_reminder(self, membership_id: str, flag: str) -> bool:
        # check-and-set without an await in between, like the SQL update
        key = (membership_id, flag)
        if key in self.claims or self.flag(membership_id, flag):
            return False
        self.claims.add(key)
        return True

    async def release_reminder_claim(self, membership_id: str, flag: str) -> None:
        self.released.append((membership_id, flag))
        self.claims.discard((membership_id, flag))

    async def mark_reminder_sent(self, membership_id: str, flag: str) -> bool:
        self.mark_calls.append((membership_id, flag))
        self.claims.discard((membership_id, flag))
        reminders = self.memberships[membership_id]["reminders"]
        if reminders.get(flag) is True:
            return False
        reminders[flag] = True
        return True

    async def get_sms_template_overrides(self) -> dict[str, str]:
        return dict(self.overrides)

    async def list_active_members(self) -> list[Member]:
        seen: dict[str, Member] = {}
        for row in self.memberships.values():
            member = self.members.get(row["user_id"])
            if row["status"] == "active" and member:
                seen.setdefault(member["id"], Member.model_validate(member))
        return list(seen.values())

    async def list_members(self, ids: list[str] | None = None) -> list[Member]:
        rows = self.members.values() if ids is None else [self.members[i] for i in ids if i in self.members]
        return [Member.model_validate(row) for row in rows]


class FakeGateway:
    """Records sends; destinations listed in ``failures`` get ok=False."""

    def __init__(self, failures: dict[str, str] | None = None) -> None:
        self.failures = failures or {}
        self.sent: list[tuple[str | None, str]] = []

    async def send(self, destination: str | None, body: str) -> SmsSendResult:
        self.sent.append((destination, body))
        if destination in self.failures:
            return SmsSendResult(ok=False, reason=self.failures[destination])
        return SmsSendResult(ok=True, reference=f"SM{len(self.sent):04d}")


class FakeTwilioMessages:
    def __init__(self, error: Exception | None = None, delay: float = 0) -> None:
        self.error = error
        self.delay = delay
        self.created: list[dict[str, str]] = []

    async def create_async(self, *, to: str, from_: str, body: str) -> SimpleNamespace:
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        self.created.append({"to": to, "from_": from_, "body": body})
        return SimpleNamespace(sid=f"SM{len(self.created):04d}")


class FakeTwilioClient:
    def __init__(self, error: Exception | None = None, delay: float = 0) -> None:
        self.messages = FakeTwilioMessages(error=error, delay=delay)
