"""Database layer."""

from .models import SCHEMA
from .repository import (
    InsertOutcome,
    Notification,
    PollingState,
    Repository,
    Subscription,
)

__all__ = [
    "SCHEMA",
    "InsertOutcome",
    "Notification",
    "PollingState",
    "Repository",
    "Subscription",
]
