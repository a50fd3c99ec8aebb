from .offsets import DEFAULT_REMINDER_OFFSETS, ReminderOffset
from .policy import ExpiryReminderPolicy, reminder_window
from .runner import ExpiryReminderRunner, build_reminder_runner, run_expiry_reminder_once
from .scheduler import ExpiryReminderScheduler, schedule_expiry_reminder

__all__ = [
    "DEFAULT_REMINDER_OFFSETS",
    "ExpiryReminderPolicy",
    "ExpiryReminderRunner",
    "ExpiryReminderScheduler",
    "ReminderOffset",
    "build_reminder_runner",
    "reminder_window",
    "run_expiry_reminder_once",
    "schedule_expiry_reminder",
]
