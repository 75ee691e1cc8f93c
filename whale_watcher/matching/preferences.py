"""Subscriber alert preferences and the rules that match transactions against them."""

from dataclasses import dataclass, field
from datetime import datetime, time
from decimal import Decimal
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from ..api import WhaleTransaction

DEFAULT_MIN_USD_VALUE = Decimal(100_000)
CHANNEL_IN_APP = "in_app"
CHANNEL_EMAIL = "email"


def parse_time_of_day(value: str) -> time:
    """Parse an "HH:MM" string, raising ValueError on anything else."""
    try:
        hours, minutes = value.strip().split(":")
        return time(int(hours), int(minutes))
    except (AttributeError, ValueError) as e:
        raise ValueError(f"Invalid time of day {value!r}, expected HH:MM") from e


def validate_timezone(name: str | None) -> str | None:
    """Return an IANA zone name unchanged if it resolves."""
    if not name:
        return None
    try:
        ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError, TypeError) as e:
        raise ValueError(f"Unknown timezone {name!r}") from e
    return name


@dataclass
class QuietHours:
    """Local time window during which alerts are suppressed."""

    enabled: bool = False
    start: str = "22:00"
    end: str = "08:00"

    def contains(self, moment: time) -> bool:
        """
        Check whether a time of day falls inside the window.

        Both ends are inclusive. A window whose start is after its end
        (e.g. 22:00-08:00) spans midnight.
        """
        current = moment.replace(second=0, microsecond=0, tzinfo=None)
        start = parse_time_of_day(self.start)
        end = parse_time_of_day(self.end)

        if start <= end:
            return start <= current <= end
        return current >= start or current <= end

    @classmethod
    def from_dict(cls, data: dict | None) -> "QuietHours":
        data = data or {}
        quiet_hours = cls(
            enabled=bool(data.get("enabled", False)),
            start=data.get("start", "22:00"),
            end=data.get("end", "08:00"),
        )
        parse_time_of_day(quiet_hours.start)
        parse_time_of_day(quiet_hours.end)
        return quiet_hours

    def to_dict(self) -> dict:
        return {"enabled": self.enabled, "start": self.start, "end": self.end}


@dataclass
class AlertPreferences:
    """What a subscriber wants to be told about, and how."""

    min_usd_value: Decimal = DEFAULT_MIN_USD_VALUE
    blockchains: set[str] = field(default_factory=lambda: {"bitcoin", "ethereum"})
    notification_channels: set[str] = field(default_factory=lambda: {CHANNEL_IN_APP})
    transaction_types: set[str] = field(default_factory=lambda: {"transfer"})
    quiet_hours: QuietHours = field(default_factory=QuietHours)
    timezone: str | None = None  # IANA name; None means the server's clock

    @classmethod
    def from_dict(cls, data: dict | None) -> "AlertPreferences":
        """
        Build preferences from the stored JSON shape, filling defaults.

        Raises:
            ValueError: a quiet-hours time or the timezone cannot be used
        """
        defaults = cls()
        data = data or {}
        return cls(
            min_usd_value=Decimal(str(data.get("min_usd_value", defaults.min_usd_value))),
            blockchains=set(data.get("blockchains", defaults.blockchains)),
            notification_channels=set(
                data.get("notification_channels", defaults.notification_channels)
            ),
            transaction_types=set(data.get("transaction_types", defaults.transaction_types)),
            quiet_hours=QuietHours.from_dict(data.get("quiet_hours")),
            timezone=validate_timezone(data.get("timezone")),
        )

    def to_dict(self) -> dict:
        data = {
            "min_usd_value": float(self.min_usd_value),
            "blockchains": sorted(self.blockchains),
            "notification_channels": sorted(self.notification_channels),
            "transaction_types": sorted(self.transaction_types),
            "quiet_hours": self.quiet_hours.to_dict(),
        }
        if self.timezone:
            data["timezone"] = self.timezone
        return data

    def local_time(self, now: datetime) -> time:
        """Time of day for the subscriber at the given instant."""
        if self.timezone and now.tzinfo is not None:
            return now.astimezone(ZoneInfo(self.timezone)).time()
        return now.time()

    def in_quiet_hours(self, now: datetime) -> bool:
        return self.quiet_hours.enabled and self.quiet_hours.contains(self.local_time(now))


def matches(
    transaction: WhaleTransaction,
    preferences: AlertPreferences,
    now: datetime,
) -> bool:
    """
    Decide whether a transaction should reach a subscriber.

    All of these must hold:
    1. USD value at or above the subscriber's minimum
    2. Blockchain is one the subscriber follows
    3. Transaction type is one the subscriber follows
    4. The subscriber is not in quiet hours at ``now``
    """
    if preferences.in_quiet_hours(now):
        return False
    if transaction.amount_usd < preferences.min_usd_value:
        return False
    if transaction.blockchain not in preferences.blockchains:
        return False
    if transaction.transaction_type not in preferences.transaction_types:
        return False
    return True


class PreferenceMatcher:
    """Stateless matcher, injectable so dispatch can be tested with a fake."""

    def matches(
        self,
        transaction: WhaleTransaction,
        preferences: AlertPreferences,
        now: datetime,
    ) -> bool:
        return matches(transaction, preferences, now)

    def filter(
        self,
        transactions: list[WhaleTransaction],
        preferences: AlertPreferences,
        now: datetime,
    ) -> list[WhaleTransaction]:
        """Return the transactions that match, in input order."""
        if preferences.in_quiet_hours(now):
            return []
        return [tx for tx in transactions if self.matches(tx, preferences, now)]
