from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Literal, get_args

from pydantic import BaseModel

from gym_reminders.core import Settings, get_settings
from gym_reminders.db import SupabaseClient
from gym_reminders.db.models import Member
from gym_reminders.notifications.sms import SmsGateway
from gym_reminders.notifications.templates import get_sms_template

logger = logging.getLogger(__name__)

BroadcastTarget = Literal["active", "all", "selected"]
BROADCAST_TARGETS: tuple[str, ...] = get_args(BroadcastTarget)


class BroadcastReport(BaseModel):
    sent: int = 0
    failed: int = 0
    skipped: int = 0  # members without a phone on file


async def _recipients(
    store: SupabaseClient,
    target: str,
    recipients: Sequence[str] | None,
) -> list[Member]:
    if target == "active":
        return await store.list_active_members()
    if target == "all":
        return await store.list_members()
    ids = list(dict.fromkeys(member_id for member_id in recipients or () if member_id))
    if not ids:
        raise ValueError("Select at least one recipient")
    return await store.list_members(ids)


async def send_broadcast(
    message: str,
    *,
    store: SupabaseClient,
    gateway: SmsGateway,
    settings: Settings | None = None,
    target: BroadcastTarget = "active",
    recipients: Sequence[str] | None = None,
) -> BroadcastReport:
    """
    Send a manual message to a group of members.

    ``target`` picks the audience: members with an active membership,
    every member, or only the ids in ``recipients``. The text is wrapped in
    the `broadcast` template. One failed recipient does not stop the rest.
    """

    if not message or not message.strip():
        raise ValueError("Broadcast message must not be empty")
    if target not in BROADCAST_TARGETS:
        raise ValueError(f"Unknown broadcast target: {target!r}")

    settings = settings or get_settings()
    members = await _recipients(store, target, recipients)
    body = await get_sms_template(
        "broadcast",
        {"MESSAGE": message.strip()},
        store=store,
        settings=settings,
    )

    report = BroadcastReport()
    for member in members:
        if not member.mobile:
            report.skipped += 1
            continue

        result = await gateway.send(member.mobile, body)
        if result.ok:
            report.sent += 1
        else:
            report.failed += 1
            logger.warning("Broadcast failed member=%s reason=%s", member.id, result.reason)

    logger.info(
        "Broadcast finished target=%s sent=%s failed=%s skipped=%s",
        target,
        report.sent,
        report.failed,
        report.skipped,
    )
    return report
