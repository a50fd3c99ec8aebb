from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Dict

from aiogram import BaseMiddleware
from aiogram.types import CallbackQuery, Message, TelegramObject

from gym_reminders.core import Settings

logger = logging.getLogger(__name__)


class AdminAccessMiddleware(BaseMiddleware):
    """
    Middleware that marks whether the sender is a configured gym admin.

    Handlers receive ``is_admin``; admin ids come from ADMIN_TELEGRAM_IDS.
    """

    def __init__(self, settings: Settings) -> None:
        self.settings = settings

    async def __call__(
        self,
        handler: Callable[[TelegramObject, Dict[str, Any]], Awaitable[Any]],
        event: TelegramObject,
        data: Dict[str, Any],
    ) -> Any:
        from_user = None
        if isinstance(event, (Message, CallbackQuery)):
            from_user = event.from_user

        is_admin = from_user is not None and from_user.id in self.settings.admin_telegram_ids
        if from_user is not None and not is_admin:
            logger.warning("Rejected admin command from telegram_user_id=%s", from_user.id)

        data["is_admin"] = is_admin
        return await handler(event, data)
