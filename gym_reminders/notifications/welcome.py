from __future__ import annotations

import logging

from gym_reminders.core import Settings, get_settings
from gym_reminders.db import SupabaseClient
from gym_reminders.notifications.sms import SmsGateway, SmsSendResult
from gym_reminders.notifications.templates import format_date, get_sms_template

logger = logging.getLogger(__name__)

REASON_NO_DESTINATION = "no-destination"


async def send_welcome_sms(
    membership_id: str,
    *,
    store: SupabaseClient,
    gateway: SmsGateway,
    settings: Settings | None = None,
) -> SmsSendResult:
    """
    Send the activation SMS for a freshly created membership.

    Called by the membership API after it stores a new membership.
    """

    settings = settings or get_settings()
    details = await store.get_membership_details(membership_id)
    if details is None or details.member is None or not details.member.mobile:
        logger.info("Skipping welcome SMS: no member phone for membership=%s", membership_id)
        return SmsSendResult(ok=False, reason=REASON_NO_DESTINATION)

    membership, member = details.membership, details.member
    body = await get_sms_template(
        "welcome",
        {
            "USER_NAME": member.first_name or "Member",
            "PACK_NAME": (details.pack.name if details.pack else None) or "Membership",
            "START_DATE": format_date(membership.start_date, settings),
            "END_DATE": format_date(membership.end_date, settings),
            "USER_ID": member.user_code or "",
        },
        store=store,
        settings=settings,
    )

    result = await gateway.send(member.mobile, body)
    logger.info(
        "Welcome SMS membership=%s ok=%s reason=%s",
        membership_id,
        result.ok,
        result.reason,
    )
    return result
