from __future__ import annotations

import logging
import re
from collections.abc import Sequence
from datetime import datetime
from typing import Any

import httpx
from pydantic import ValidationError

from gym_reminders.core import Settings, get_settings
from gym_reminders.db.models import Member, MembershipDetails, MembershipStatus


logger = logging.getLogger(__name__)

SMS_TEMPLATES_SETTING_KEY = "sms_templates"
CLAIM_LEASE_SECONDS = 600

_MEMBER_COLUMNS = "id,user_code,first_name,last_name,mobile"
_MEMBERSHIP_SELECT = (
    "*,"
    f"member:users({_MEMBER_COLUMNS}),"
    "pack:packs(id,name)"
)
_FLAG_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class SupabaseError(RuntimeError):
    def __init__(self, message: str, *, status_code: int | None = None, detail: str | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.detail = detail


def _check_flag(flag: str) -> str:
    if not _FLAG_NAME.match(flag):
        raise ValueError(f"Invalid reminder flag name: {flag!r}")
    return flag


class SupabaseClient:
    """
    Minimal async Supabase REST client for the reminder service.

    Only the reads and writes the reminder jobs need are implemented here;
    the membership CRUD lives in the main API.
    Service role key is used, so RLS is bypassed.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        base_url = str(self._settings.supabase_url).rstrip("/")
        self._rest = httpx.AsyncClient(
            base_url=f"{base_url}/rest/v1",
            headers={
                "apikey": self._settings.supabase_service_key,
                "Authorization": f"Bearer {self._settings.supabase_service_key}",
                "Content-Type": "application/json",
                "Accept": "application/json",
            },
            timeout=10.0,
            transport=transport,
        )

    async def close(self) -> None:
        await self._rest.aclose()

    async def _get_rows(
        self,
        table: str,
        params: dict[str, Any] | list[tuple[str, str]],
    ) -> list[dict[str, Any]]:
        response = await self._rest.get(f"/{table}", params=params)
        if response.status_code >= 400:
            raise SupabaseError(
                f"Supabase REST GET failed for '{table}'",
                status_code=response.status_code,
                detail=response.text,
            )
        items: list[dict[str, Any]] = response.json()
        return items

    async def _get_single_row(
        self,
        table: str,
        params: dict[str, Any],
        select: str = "*",
    ) -> dict[str, Any] | None:
        items = await self._get_rows(table, {**params, "select": select, "limit": 1})
        if not items:
            return None
        return items[0]

    async def list_reminder_candidates(
        self,
        *,
        start: datetime,
        end: datetime,
        flag: str,
    ) -> list[MembershipDetails]:
        """
        Active memberships ending in ``[start, end)`` whose ``reminders[flag]``
        is not true, with member and pack embedded.

        Expected Supabase schema (minimum):
        - `memberships`: id, user_id -> users.id, pack_id -> packs.id,
          start_date, end_date (timestamptz), status, reminders (jsonb),
          reminder_claims (jsonb)
        - `users`: id, user_code, first_name, last_name, mobile
        - `packs`: id, name
        """

        flag = _check_flag(flag)
        rows = await self._get_rows(
            "memberships",
            [
                ("select", _MEMBERSHIP_SELECT),
                ("status", f"eq.{MembershipStatus.ACTIVE.value}"),
                ("end_date", f"gte.{start.isoformat()}"),
                ("end_date", f"lt.{end.isoformat()}"),
                ("or", f"(reminders->>{flag}.is.null,reminders->>{flag}.neq.true)"),
                ("order", "end_date.asc"),
            ],
        )

        candidates: list[MembershipDetails] = []
        for row in rows:
            # skip the bad row, keep the rest of the batch
            try:
                candidates.append(MembershipDetails.from_row(row))
            except ValidationError:
                logger.exception("Skipping malformed membership row id=%s", row.get("id"))
        return candidates

    async def get_membership_details(self, membership_id: str) -> MembershipDetails | None:
        row = await self._get_single_row(
            "memberships",
            params={"id": f"eq.{membership_id}"},
            select=_MEMBERSHIP_SELECT,
        )
        if row is None:
            return None
        return MembershipDetails.from_row(row)

    async def _rpc(self, function: str, payload: dict[str, Any], error: str) -> Any:
        response = await self._rest.post(f"/rpc/{function}", json=payload)
        if response.status_code >= 400:
            raise SupabaseError(
                error,
                status_code=response.status_code,
                detail=response.text,
            )
        if not response.content:
            return None
        return response.json()

    async def claim_reminder(
        self,
        membership_id: str,
        flag: str,
        lease_seconds: int = CLAIM_LEASE_SECONDS,
    ) -> bool:
        """
        Take the exclusive right to send reminder ``flag`` for a membership.

        Succeeds only while ``reminders[flag]`` is not true and nobody holds
        a live claim, so at most one worker sends. A claim older than
        ``lease_seconds`` is considered abandoned. Backed by:

            create function claim_membership_reminder(
              membership_id uuid, flag text, lease_seconds integer
            ) returns boolean language sql as $$
              with claimed as (
                update memberships
                   set reminder_claims = coalesce(reminder_claims, '{}'::jsonb)
                                         || jsonb_build_object(flag, now())
                 where id = membership_id
                   and coalesce((reminders ->> flag)::boolean, false) = false
                   and (reminder_claims ->> flag is null
                        or (reminder_claims ->> flag)::timestamptz
                           < now() - make_interval(secs => lease_seconds))
                returning 1
              )
              select exists (select 1 from claimed);
            $$;
        """

        claimed = await self._rpc(
            "claim_membership_reminder",
            {
                "membership_id": membership_id,
                "flag": _check_flag(flag),
                "lease_seconds": lease_seconds,
            },
            "Failed to claim reminder",
        )
        return claimed is True

    async def release_reminder_claim(self, membership_id: str, flag: str) -> None:
        """
        Drop a claim after a failed send so the next run can retry.

            create function release_membership_reminder(membership_id uuid, flag text)
            returns void language sql as $$
              update memberships
                 set reminder_claims = coalesce(reminder_claims, '{}'::jsonb) - flag
               where id = membership_id;
            $$;
        """

        await self._rpc(
            "release_membership_reminder",
            {"membership_id": membership_id, "flag": _check_flag(flag)},
            "Failed to release reminder claim",
        )

    async def mark_reminder_sent(self, membership_id: str, flag: str) -> bool:
        """
        Atomically set ``reminders[flag] = true`` unless it already is, and
        drop the matching claim.

        Returns True if this call flipped the flag, False if it was already
        set. Backed by the SQL function:

            create function mark_membership_reminder(membership_id uuid, flag text)
            returns boolean language sql as $$
              with updated as (
                update memberships
                   set reminders = coalesce(reminders, '{}'::jsonb)
                                   || jsonb_build_object(flag, true),
                       reminder_claims = coalesce(reminder_claims, '{}'::jsonb) - flag
                 where id = membership_id
                   and coalesce((reminders ->> flag)::boolean, false) = false
                returning 1
              )
              select exists (select 1 from updated);
            $$;
        """

        marked = await self._rpc(
            "mark_membership_reminder",
            {"membership_id": membership_id, "flag": _check_flag(flag)},
            "Failed to mark reminder as sent",
        )
        return marked is True

    async def get_sms_template_overrides(self) -> dict[str, str]:
        """
        Operator-edited SMS templates stored in `settings` under a fixed key.

        Returns {} if nothing was saved yet.
        """

        row = await self._get_single_row(
            "settings",
            params={"key": f"eq.{SMS_TEMPLATES_SETTING_KEY}"},
        )
        value = (row or {}).get("value") or {}
        if not isinstance(value, dict):
            return {}
        return {key: text for key, text in value.items() if isinstance(text, str)}

    def _parse_members(self, rows: list[dict[str, Any]]) -> list[Member]:
        members: dict[str, Member] = {}
        for row in rows:
            if not row:
                continue
            try:
                member = Member.model_validate(row)
            except ValidationError:
                logger.exception("Skipping malformed user row id=%s", row.get("id"))
                continue
            members.setdefault(member.id, member)
        return list(members.values())

    async def list_active_members(self) -> list[Member]:
        """
        Members holding at least one active membership, without duplicates.
        """

        rows = await self._get_rows(
            "memberships",
            {
                "select": f"member:users({_MEMBER_COLUMNS})",
                "status": f"eq.{MembershipStatus.ACTIVE.value}",
            },
        )
        return self._parse_members([row.get("member") for row in rows])

    async def list_members(self, ids: Sequence[str] | None = None) -> list[Member]:
        """
        All members, or only those whose id is in ``ids``.
        """

        params: dict[str, Any] = {"select": _MEMBER_COLUMNS, "order": "first_name.asc"}
        if ids is not None:
            if not ids:
                return []
            quoted = ",".join('"{}"'.format(str(member_id).replace('"', "")) for member_id in ids)
            params["id"] = f"in.({quoted})"
        rows = await self._get_rows("users", params)
        return self._parse_members(rows)


_supabase_client: SupabaseClient | None = None


def get_supabase_client() -> SupabaseClient:
    """
    Lazy singleton for SupabaseClient.

    The composition root closes it on shutdown.
    """

    global _supabase_client
    if _supabase_client is None:
        _supabase_client = SupabaseClient()
    return _supabase_client
