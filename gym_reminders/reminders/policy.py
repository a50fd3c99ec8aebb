from __future__ import annotations

import logging
from datetime import datetime, time, timedelta, tzinfo

from gym_reminders.core import Settings, get_settings
from gym_reminders.db import SupabaseClient
from gym_reminders.db.models import MembershipDetails, MembershipStatus
from gym_reminders.notifications.sms import SmsGateway
from gym_reminders.notifications.templates import format_date, render_template

logger = logging.getLogger(__name__)


def reminder_window(days: int, tz: tzinfo, now: datetime | None = None) -> tuple[datetime, datetime]:
    """
    Calendar day that is ``days`` days after today in ``tz``, as a
    half-open ``[start, end)`` range of aware datetimes.
    """

    now = now.astimezone(tz) if now is not None else datetime.now(tz)
    day = now.date() + timedelta(days=days)
    start = datetime.combine(day, time.min, tzinfo=tz)
    end = datetime.combine(day + timedelta(days=1), time.min, tzinfo=tz)
    return start, end


def is_eligible(
    details: MembershipDetails,
    *,
    flag: str,
    start: datetime,
    end: datetime,
) -> bool:
    membership = details.membership
    if membership.status != MembershipStatus.ACTIVE:
        return False
    if membership.end_date is None:
        return False
    if membership.reminder_sent(flag):
        return False
    end_date = membership.end_date
    if end_date.tzinfo is None:
        end_date = end_date.replace(tzinfo=start.tzinfo)
    return start <= end_date < end


class ExpiryReminderPolicy:
    """
    Sends expiry reminders for one offset at a time.

    A membership moves from not-yet-eligible to eligible-unsent when its end
    date enters the window, and to sent once the SMS goes out and the flag is
    stored. Each send is preceded by a store-side claim, so concurrent
    workers never send the same reminder twice. Skips and failures leave the
    flag unset (and the claim released) so the next run retries.
    """

    def __init__(
        self,
        store: SupabaseClient,
        gateway: SmsGateway,
        settings: Settings | None = None,
    ) -> None:
        self.store = store
        self.gateway = gateway
        self.settings = settings or get_settings()

    async def run_offset(
        self,
        days: int,
        flag: str,
        template_key: str,
        *,
        now: datetime | None = None,
    ) -> int:
        """
        Remind every eligible membership ending ``days`` days from now.

        Returns the number of messages sent.
        """

        start, end = reminder_window(days, self.settings.tz, now)
        candidates = await self.store.list_reminder_candidates(start=start, end=end, flag=flag)
        overrides = await self.store.get_sms_template_overrides()

        logger.debug(
            "Reminder offset=%s flag=%s window=[%s, %s) candidates=%s",
            days,
            flag,
            start.isoformat(),
            end.isoformat(),
            len(candidates),
        )

        sent = 0
        for details in candidates:
            if not is_eligible(details, flag=flag, start=start, end=end):
                continue
            try:
                if await self._remind(details, days, flag, template_key, overrides):
                    sent += 1
            except Exception:
                logger.exception(
                    "Unexpected error sending reminder membership=%s flag=%s",
                    details.membership.id,
                    flag,
                )
        return sent

    async def _remind(
        self,
        details: MembershipDetails,
        days: int,
        flag: str,
        template_key: str,
        overrides: dict[str, str],
    ) -> bool:
        membership, member = details.membership, details.member
        if member is None or not member.mobile:
            logger.info("Skipping reminder: no phone for membership=%s", membership.id)
            return False

        body = render_template(
            template_key,
            {
                "USER_NAME": member.first_name or "Member",
                "PACK_NAME": (details.pack.name if details.pack else None) or "membership",
                "END_DATE": format_date(membership.end_date, self.settings),
                "DAYS_LEFT": days,
                "USER_ID": member.user_code or "",
            },
            gym_name=self.settings.gym_name,
            overrides=overrides,
        )

        if not await self.store.claim_reminder(membership.id, flag):
            logger.info(
                "Reminder already claimed membership=%s flag=%s",
                membership.id,
                flag,
            )
            return False

        result = await self.gateway.send(member.mobile, body)
        if not result.ok:
            logger.warning(
                "Reminder not sent membership=%s flag=%s reason=%s",
                membership.id,
                flag,
                result.reason,
            )
            await self._release(membership.id, flag)
            return False

        if not await self.store.mark_reminder_sent(membership.id, flag):
            logger.warning(
                "Reminder flag already set membership=%s flag=%s",
                membership.id,
                flag,
            )
        return True

    async def _release(self, membership_id: str, flag: str) -> None:
        try:
            await self.store.release_reminder_claim(membership_id, flag)
        except Exception:
            # the claim lease expires on its own
            logger.exception(
                "Failed to release reminder claim membership=%s flag=%s",
                membership_id,
                flag,
            )
