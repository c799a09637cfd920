"""Scheduled brokers package."""

from .fire_due_reminders import fire_due_reminders

__all__ = [
    "fire_due_reminders",
]
