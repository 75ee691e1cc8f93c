"""Shared fixtures for Whale Watcher tests."""

from datetime import datetime, timezone
from decimal import Decimal

import pytest
import pytest_asyncio

from whale_watcher.api import WhaleTransaction
from whale_watcher.db import Repository
from whale_watcher.matching import AlertPreferences, QuietHours

T0 = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def feed_item(**overrides) -> dict:
    """A transaction in the feed's JSON shape."""
    item = {
        "blockchain": "ethereum",
        "symbol": "eth",
        "id": "1867223407",
        "transaction_type": "transfer",
        "hash": "0x" + "a" * 64,
        "from": {"address": "0x" + "1" * 40, "owner": "binance", "owner_type": "exchange"},
        "to": {"address": "0x" + "2" * 40, "owner_type": "unknown"},
        "timestamp": int(T0.timestamp()),
        "amount": 80.5,
        "amount_usd": 250000,
        "transaction_count": 1,
    }
    item.update(overrides)
    return item


def make_tx(tx_hash: str = "0xabc", **overrides) -> WhaleTransaction:
    fields = dict(
        hash=tx_hash,
        blockchain="ethereum",
        symbol="ETH",
        amount=Decimal("80.5"),
        amount_usd=Decimal("250000"),
        from_address="0x" + "1" * 40,
        to_address="0x" + "2" * 40,
        transaction_type="transfer",
        timestamp=T0,
    )
    fields.update(overrides)
    return WhaleTransaction(**fields)


def make_prefs(**overrides) -> AlertPreferences:
    fields = dict(
        min_usd_value=Decimal(100_000),
        blockchains={"ethereum"},
        notification_channels={"in_app"},
        transaction_types={"transfer"},
        quiet_hours=QuietHours(enabled=False),
    )
    fields.update(overrides)
    return AlertPreferences(**fields)


class Clock:
    """Settable clock for components that take a ``clock`` callable."""

    def __init__(self, now: datetime = T0):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def clock() -> Clock:
    return Clock()


@pytest_asyncio.fixture
async def repository(tmp_path):
    repo = Repository(tmp_path / "whale.db")
    await repo.initialize()
    yield repo
    await repo.close()


@pytest_asyncio.fixture
async def elite_subscriber(repository):
    """One elite user subscribed to ethereum transfers over $100k, in-app only."""
    await repository.upsert_user("user-1", "whale@example.com", "elite")
    await repository.upsert_subscription("user-1", True, make_prefs())
    return "user-1"
