"""Notification fan-out."""

from .dispatcher import EmailSender, NotificationDispatcher
from .formatting import format_usd

__all__ = ["EmailSender", "NotificationDispatcher", "format_usd"]
