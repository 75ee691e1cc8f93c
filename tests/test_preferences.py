from datetime import datetime, time, timezone
from decimal import Decimal

import pytest

from conftest import make_prefs, make_tx
from whale_watcher.matching import AlertPreferences, PreferenceMatcher, QuietHours, matches

NIGHT_QUIET = QuietHours(enabled=True, start="22:00", end="08:00")


def at(hour: int, minute: int = 0) -> datetime:
    return datetime(2026, 3, 1, hour, minute)


def test_threshold_is_inclusive():
    prefs = make_prefs(min_usd_value=Decimal("100000"))

    assert not matches(make_tx(amount_usd=Decimal("99999.99")), prefs, at(12))
    assert matches(make_tx(amount_usd=Decimal("100000.00")), prefs, at(12))


def test_blockchain_must_be_followed():
    prefs = make_prefs(blockchains={"bitcoin", "tron"})

    assert not matches(make_tx(blockchain="ethereum"), prefs, at(12))
    assert matches(make_tx(blockchain="tron"), prefs, at(12))


def test_transaction_type_must_be_followed():
    prefs = make_prefs(transaction_types={"exchange_deposit"})

    assert not matches(make_tx(transaction_type="transfer"), prefs, at(12))
    assert matches(make_tx(transaction_type="exchange_deposit"), prefs, at(12))


def test_quiet_hours_suppress_overnight():
    prefs = make_prefs(quiet_hours=NIGHT_QUIET)
    tx = make_tx()

    assert not matches(tx, prefs, at(23, 30))
    assert matches(tx, prefs, at(9, 0))


@pytest.mark.parametrize(
    "moment, inside",
    [
        (time(22, 0), True),
        (time(23, 59), True),
        (time(0, 0), True),
        (time(8, 0), True),
        (time(8, 1), False),
        (time(21, 59), False),
        (time(12, 0), False),
    ],
)
def test_overnight_window_boundaries(moment, inside):
    assert NIGHT_QUIET.contains(moment) is inside


def test_same_day_window():
    lunch = QuietHours(enabled=True, start="12:00", end="14:00")

    assert lunch.contains(time(12, 0))
    assert lunch.contains(time(14, 0, 59))
    assert not lunch.contains(time(14, 1))
    assert not lunch.contains(time(23, 0))


def test_disabled_quiet_hours_never_suppress():
    prefs = make_prefs(quiet_hours=QuietHours(enabled=False, start="00:00", end="23:59"))

    assert matches(make_tx(), prefs, at(3))


def test_quiet_hours_use_subscriber_timezone():
    prefs = make_prefs(quiet_hours=NIGHT_QUIET, timezone="America/New_York")
    # 04:30 UTC is 23:30 in New York (EST)
    late_evening_ny = datetime(2026, 1, 15, 4, 30, tzinfo=timezone.utc)
    # 15:00 UTC is 10:00 in New York
    morning_ny = datetime(2026, 1, 15, 15, 0, tzinfo=timezone.utc)

    assert not matches(make_tx(), prefs, late_evening_ny)
    assert matches(make_tx(), prefs, morning_ny)


def test_matcher_filter_keeps_order_and_drops_non_matches():
    matcher = PreferenceMatcher()
    prefs = make_prefs()
    txs = [
        make_tx("a"),
        make_tx("b", amount_usd=Decimal("5000")),
        make_tx("c", blockchain="bitcoin"),
        make_tx("d"),
    ]

    assert [tx.hash for tx in matcher.filter(txs, prefs, at(12))] == ["a", "d"]
    assert matcher.filter(txs, make_prefs(quiet_hours=NIGHT_QUIET), at(23)) == []


def test_preferences_from_stored_json_fill_defaults():
    prefs = AlertPreferences.from_dict(
        {"min_usd_value": 500000, "quiet_hours": {"enabled": True, "start": "23:00"}}
    )

    assert prefs.min_usd_value == Decimal("500000")
    assert prefs.blockchains == {"bitcoin", "ethereum"}
    assert prefs.notification_channels == {"in_app"}
    assert prefs.transaction_types == {"transfer"}
    assert prefs.quiet_hours == QuietHours(enabled=True, start="23:00", end="08:00")
    assert AlertPreferences.from_dict(prefs.to_dict()) == prefs


@pytest.mark.parametrize(
    "stored",
    [
        {"timezone": "Mars/Olympus_Mons"},
        {"quiet_hours": {"enabled": True, "start": "10pm"}},
        {"quiet_hours": {"enabled": True, "end": "25:00"}},
    ],
)
def test_unusable_stored_preferences_are_rejected(stored):
    with pytest.raises(ValueError):
        AlertPreferences.from_dict(stored)


def test_empty_timezone_means_server_clock():
    assert AlertPreferences.from_dict({"timezone": ""}).timezone is None
