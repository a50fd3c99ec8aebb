from aiogram import Router

from . import reminders


def setup_routers() -> Router:
    """
    Aggregate and return root router for the admin bot.
    """

    router = Router(name="root")
    router.include_router(reminders.router)
    return router
