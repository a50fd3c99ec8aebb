from __future__ import annotations

import re
from collections.abc import Mapping
from datetime import datetime
from typing import TYPE_CHECKING

from gym_reminders.core import Settings, get_settings

if TYPE_CHECKING:
    from gym_reminders.db import SupabaseClient


DEFAULT_TEMPLATES: dict[str, str] = {
    "welcome": (
        "Hi {{USER_NAME}}, welcome to {{GYM_NAME}}! Your {{PACK_NAME}} is active "
        "from {{START_DATE}} to {{END_DATE}}. Member ID: {{USER_ID}}."
    ),
    "reminder_7d": (
        "Hi {{USER_NAME}}, your {{PACK_NAME}} at {{GYM_NAME}} expires on "
        "{{END_DATE}} (in 7 days). Renew now to avoid interruption."
    ),
    "reminder_3d": (
        "Hi {{USER_NAME}}, only 3 days left! Your {{PACK_NAME}} at {{GYM_NAME}} "
        "expires on {{END_DATE}}. Renew today to keep training without a break."
    ),
    "supplement": (
        "New at {{GYM_NAME}}: {{PRODUCT_NAME}} is now in stock. Ask at the front desk."
    ),
    "broadcast": "{{MESSAGE}}\n- {{GYM_NAME}}",
}

FALLBACK_TEMPLATE_KEY = "broadcast"


def format_date(value: datetime | None, settings: Settings) -> str:
    """Format a stored timestamp as a local calendar date for messages."""
    if value is None:
        return ""
    if value.tzinfo is None:
        value = value.replace(tzinfo=settings.tz)
    return value.astimezone(settings.tz).strftime(settings.reminder_date_format)


def resolve_template(key: str, overrides: Mapping[str, str] | None = None) -> str:
    """
    Pick the template text for ``key``.

    A non-blank operator override wins, then the built-in default for the
    key, then the broadcast default.
    """

    override = (overrides or {}).get(key)
    if override and override.strip():
        return override
    return DEFAULT_TEMPLATES.get(key) or DEFAULT_TEMPLATES.get(FALLBACK_TEMPLATE_KEY) or ""


def render_template(
    key: str,
    variables: Mapping[str, object | None],
    *,
    gym_name: str,
    overrides: Mapping[str, str] | None = None,
) -> str:
    """
    Fill ``{{NAME}}`` placeholders of the template ``key``.

    GYM_NAME is always available; a caller only replaces it by passing the
    key explicitly. Placeholders without a value are left in the text.
    """

    merged: dict[str, str] = {"GYM_NAME": gym_name}
    merged.update({name: str(value) for name, value in variables.items() if value is not None})

    text = resolve_template(key, overrides)
    # longest first, so no name shadows a longer one sharing its prefix
    names = sorted(merged, key=len, reverse=True)
    placeholder = re.compile("|".join(re.escape("{{" + name + "}}") for name in names))

    def _substitute(match: re.Match[str]) -> str:
        return merged[match.group(0)[2:-2]]

    return placeholder.sub(_substitute, text)


async def get_sms_template(
    key: str,
    variables: Mapping[str, object | None],
    *,
    store: SupabaseClient,
    settings: Settings | None = None,
) -> str:
    """
    Render ``key`` with the operator overrides currently saved in settings.
    """

    settings = settings or get_settings()
    overrides = await store.get_sms_template_overrides()
    return render_template(key, variables, gym_name=settings.gym_name, overrides=overrides)
