"""
Balance Monitor - Notifications

Bark push notifications for usage alerts, daily summaries and expiry
reminders.
"""

from .bark import BarkNotifier, notify_safely

__all__ = ["BarkNotifier", "notify_safely"]
