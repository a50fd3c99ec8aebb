from __future__ import annotations

import logging

from aiogram import Router
from aiogram.filters import Command, CommandObject
from aiogram.types import Message

from gym_reminders.core import Settings
from gym_reminders.db import SupabaseClient
from gym_reminders.notifications.broadcast import send_broadcast
from gym_reminders.notifications.sms import SmsGateway
from gym_reminders.reminders.runner import ExpiryReminderRunner, run_expiry_reminder_once

router = Router(name="reminders")
logger = logging.getLogger(__name__)

NOT_ALLOWED = "This command is only available to gym admins."


@router.message(Command("remind"))
async def cmd_remind(
    message: Message,
    reminder_runner: ExpiryReminderRunner,
    is_admin: bool = False,
) -> None:
    """
    Run the expiry reminder sweep immediately.
    """

    if not is_admin:
        await message.answer(NOT_ALLOWED)
        return

    try:
        sent = await run_expiry_reminder_once(reminder_runner)
    except Exception as exc:
        logger.exception("Error running manual reminder sweep: %s", exc)
        await message.answer("❌ Reminder sweep failed, see service logs.")
        return

    await message.answer(f"✅ Sent <b>{sent}</b> expiry reminder(s).")


BROADCAST_USAGE = (
    "Usage: /broadcast [active|all] <message>\n"
    "or /broadcast selected <id1,id2> <message>"
)


def parse_broadcast_args(args: str | None) -> tuple[str, list[str], str]:
    """
    Split /broadcast arguments into (target, recipient ids, text).

    Without a leading target word the message goes to active members.
    """

    parts = (args or "").strip().split(maxsplit=1)
    if not parts:
        return "active", [], ""

    target = parts[0].lower()
    rest = parts[1] if len(parts) > 1 else ""
    if target in ("active", "all"):
        return target, [], rest.strip()
    if target == "selected":
        ids, _, text = rest.strip().partition(" ")
        recipients = [member_id.strip() for member_id in ids.split(",") if member_id.strip()]
        return target, recipients, text.strip()
    return "active", [], (args or "").strip()


@router.message(Command("broadcast"))
async def cmd_broadcast(
    message: Message,
    command: CommandObject,
    store: SupabaseClient,
    gateway: SmsGateway,
    settings: Settings,
    is_admin: bool = False,
) -> None:
    """
    Send a manual SMS to active members, all members or selected ids.
    """

    if not is_admin:
        await message.answer(NOT_ALLOWED)
        return

    target, recipients, text = parse_broadcast_args(command.args)
    if not text or (target == "selected" and not recipients):
        # plain text, the placeholders look like HTML tags
        await message.answer(BROADCAST_USAGE, parse_mode=None)
        return

    try:
        report = await send_broadcast(
            text,
            store=store,
            gateway=gateway,
            settings=settings,
            target=target,
            recipients=recipients,
        )
    except Exception as exc:
        logger.exception("Error sending broadcast: %s", exc)
        await message.answer("❌ Broadcast failed, see service logs.")
        return

    await message.answer(
        "📣 Broadcast finished\n"
        f"Sent: <b>{report.sent}</b>\n"
        f"Failed: <b>{report.failed}</b>\n"
        f"No phone: <b>{report.skipped}</b>"
    )
