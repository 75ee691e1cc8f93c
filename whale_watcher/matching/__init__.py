"""Subscriber preference matching."""

from .preferences import (
    CHANNEL_EMAIL,
    CHANNEL_IN_APP,
    AlertPreferences,
    PreferenceMatcher,
    QuietHours,
    matches,
)

__all__ = [
    "CHANNEL_EMAIL",
    "CHANNEL_IN_APP",
    "AlertPreferences",
    "PreferenceMatcher",
    "QuietHours",
    "matches",
]
