from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime

from gym_reminders.core import Settings, get_settings
from gym_reminders.db import SupabaseClient, get_supabase_client
from gym_reminders.notifications.sms import SmsGateway
from gym_reminders.reminders.offsets import DEFAULT_REMINDER_OFFSETS, ReminderOffset
from gym_reminders.reminders.policy import ExpiryReminderPolicy

logger = logging.getLogger(__name__)


class ExpiryReminderRunner:
    """
    Full reminder sweep over all configured offsets.
    """

    def __init__(
        self,
        policy: ExpiryReminderPolicy,
        offsets: Sequence[ReminderOffset] = DEFAULT_REMINDER_OFFSETS,
    ) -> None:
        self.policy = policy
        self.offsets = tuple(offsets)

    async def run_all(self, *, now: datetime | None = None) -> int:
        total = 0
        for offset in self.offsets:
            # Each offset is isolated so a broken stage does not hide the rest
            try:
                sent = await self.policy.run_offset(
                    offset.days,
                    offset.flag,
                    offset.template_key,
                    now=now,
                )
            except Exception:
                logger.exception(
                    "Expiry reminder offset failed days=%s flag=%s",
                    offset.days,
                    offset.flag,
                )
                continue
            logger.debug("Expiry reminder offset days=%s sent=%s", offset.days, sent)
            total += sent
        return total


def build_reminder_runner(
    settings: Settings | None = None,
    *,
    store: SupabaseClient | None = None,
    gateway: SmsGateway | None = None,
    offsets: Sequence[ReminderOffset] = DEFAULT_REMINDER_OFFSETS,
) -> ExpiryReminderRunner:
    settings = settings or get_settings()
    policy = ExpiryReminderPolicy(
        store=store or get_supabase_client(),
        gateway=gateway or SmsGateway(settings),
        settings=settings,
    )
    return ExpiryReminderRunner(policy, offsets)


async def run_expiry_reminder_once(runner: ExpiryReminderRunner | None = None) -> int:
    """
    Run one reminder sweep now and return how many reminders were sent.

    Same semantics as a scheduled fire; safe to call repeatedly because sent
    reminders are never sent again.
    """

    if runner is not None:
        sent = await runner.run_all()
    else:
        # one-off runner: its gateway session is ours to close
        settings = get_settings()
        gateway = SmsGateway(settings)
        try:
            sent = await build_reminder_runner(settings, gateway=gateway).run_all()
        finally:
            await gateway.close()
    logger.info("Expiry reminder sweep finished, sent=%s", sent)
    return sent
