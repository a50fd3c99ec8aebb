"""
Telegram admin bot for triggering reminder sweeps and broadcasts by hand.
"""
