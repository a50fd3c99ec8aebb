"""
Membership-expiry reminder service for the gym-management platform.

This package contains:
- Shared configuration, logging and validation (`gym_reminders.core`)
- Supabase data access and boundary models (`gym_reminders.db`)
- SMS templates and the gateway adapter (`gym_reminders.notifications`)
- Reminder policy, runner and daily scheduler (`gym_reminders.reminders`)
- Optional Telegram admin trigger (`gym_reminders.bot`)
"""
