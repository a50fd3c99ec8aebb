from __future__ import annotations

import asyncio

from aiogram import Bot, Dispatcher
from aiogram.client.default import DefaultBotProperties
from aiogram.enums import ParseMode
from aiogram.fsm.storage.memory import MemoryStorage

from gym_reminders.bot.handlers import setup_routers
from gym_reminders.bot.middlewares import AdminAccessMiddleware
from gym_reminders.core import get_settings
from gym_reminders.core.logging import configure_logging
from gym_reminders.db import get_supabase_client
from gym_reminders.notifications.sms import SmsGateway
from gym_reminders.reminders.runner import build_reminder_runner
from gym_reminders.reminders.scheduler import schedule_expiry_reminder


async def _run() -> None:
    settings = get_settings()
    logger = configure_logging()

    store = get_supabase_client()
    gateway = SmsGateway(settings)
    runner = build_reminder_runner(settings, store=store, gateway=gateway)

    logger.info("Starting reminder service in %s environment", settings.environment)
    if not settings.sms_enabled:
        logger.info("SMS_ENABLED is off; reminders will be skipped until it is enabled")

    scheduler = await schedule_expiry_reminder(runner, settings)

    try:
        if settings.admin_bot_token:
            bot = Bot(
                token=settings.admin_bot_token,
                default=DefaultBotProperties(parse_mode=ParseMode.HTML),
            )
            dp = Dispatcher(
                storage=MemoryStorage(),
                reminder_runner=runner,
                store=store,
                gateway=gateway,
                settings=settings,
            )
            dp.message.middleware(AdminAccessMiddleware(settings))
            dp.include_router(setup_routers())
            try:
                await dp.start_polling(bot, allowed_updates=dp.resolve_used_update_types())
            finally:
                await bot.session.close()
        else:
            # Scheduler-only mode: keep the event loop alive for the daily job
            await asyncio.Event().wait()
    finally:
        # Graceful shutdown
        await scheduler.stop()
        await gateway.close()
        await store.close()


def main() -> None:
    asyncio.run(_run())


if __name__ == "__main__":
    main()
