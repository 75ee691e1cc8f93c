"""Client for the Whale Alert transaction feed - fetches large on-chain transfers."""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import httpx

from ..config import MAX_FEED_LIMIT, FeedConfig
from ..errors import FeedUnavailable, Unauthorized, WhaleWatcherError
from .addresses import classify_address

logger = logging.getLogger(__name__)

PERIODS = {
    "1h": timedelta(hours=1),
    "24h": timedelta(hours=24),
    "7d": timedelta(days=7),
    "30d": timedelta(days=30),
}


def _to_unix(value: datetime | int | float) -> int:
    if isinstance(value, datetime):
        return int(value.timestamp())
    return int(value)


@dataclass
class WhaleTransaction:
    """A large transaction reported by the feed."""

    hash: str
    blockchain: str
    symbol: str
    amount: Decimal
    amount_usd: Decimal
    from_address: str
    to_address: str
    transaction_type: str  # transfer, exchange_deposit, exchange_withdrawal, ...
    timestamp: datetime
    from_owner: str | None = None
    from_owner_type: str | None = None  # e.g. "exchange"
    to_owner: str | None = None
    to_owner_type: str | None = None
    feed_id: str | None = None
    id: int | None = None  # row id once stored
    raw: dict = field(default_factory=dict, repr=False)

    @classmethod
    def from_feed(cls, item: dict) -> "WhaleTransaction":
        """Build a transaction from one feed JSON record."""
        sender = item.get("from") or {}
        receiver = item.get("to") or {}
        ts = item.get("timestamp", 0)
        if isinstance(ts, (int, float)):
            timestamp = datetime.fromtimestamp(ts, tz=timezone.utc)
        else:
            timestamp = datetime.fromisoformat(str(ts).replace("Z", "+00:00"))

        return cls(
            hash=item["hash"],
            blockchain=str(item.get("blockchain", "")).lower(),
            symbol=str(item.get("symbol", "")).upper(),
            amount=Decimal(str(item.get("amount", 0))),
            amount_usd=Decimal(str(item.get("amount_usd", 0))),
            from_address=sender.get("address", ""),
            from_owner=sender.get("owner") or None,
            from_owner_type=sender.get("owner_type") or None,
            to_address=receiver.get("address", ""),
            to_owner=receiver.get("owner") or None,
            to_owner_type=receiver.get("owner_type") or None,
            transaction_type=item.get("transaction_type", "transfer"),
            timestamp=timestamp,
            feed_id=str(item["id"]) if item.get("id") is not None else None,
            raw=item,
        )

    @property
    def exchange(self) -> str | None:
        """Name of the exchange on either side of the transfer, if any."""
        if self.from_owner_type == "exchange":
            return self.from_owner
        if self.to_owner_type == "exchange":
            return self.to_owner
        return None


@dataclass
class FeedBlockchain:
    """A blockchain listed by the feed status endpoint."""

    name: str
    symbols: list[str]


@dataclass
class AddressActivity:
    """Result of an address-scoped lookup."""

    address: str
    blockchain: str
    transactions: list[WhaleTransaction]
    error: str | None = None

    @property
    def total_value_usd(self) -> Decimal:
        return sum((tx.amount_usd for tx in self.transactions), Decimal(0))

    @property
    def transaction_count(self) -> int:
        return len(self.transactions)


class WhaleFeedClient:
    """
    Rate-limited client for the Whale Alert API.

    Calls made through one instance are serialised and spaced at least
    ``min_request_interval_ms`` apart.
    """

    def __init__(
        self,
        config: FeedConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.config = config
        self.base_url = config.base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            timeout=config.timeout_seconds,
            transport=transport,
            headers={"Accept": "application/json"},
        )
        self._min_interval = config.min_request_interval_ms / 1000
        self._throttle = asyncio.Lock()
        self._last_call: float | None = None

    async def close(self):
        """Close the HTTP client."""
        await self._client.aclose()

    async def _request(self, endpoint: str, params: dict | None = None) -> dict:
        """
        Make an authenticated GET request against the feed.

        Raises:
            Unauthorized: no API key configured
            FeedUnavailable: transport failure or non-2xx response
        """
        if not self.config.api_key:
            raise Unauthorized()

        query = {k: v for k, v in (params or {}).items() if v is not None}
        query["api_key"] = self.config.api_key

        async with self._throttle:
            if self._last_call is not None:
                wait = self._min_interval - (time.monotonic() - self._last_call)
                if wait > 0:
                    await asyncio.sleep(wait)

            try:
                response = await self._client.get(
                    f"{self.base_url}{endpoint}", params=query
                )
            except httpx.HTTPError as e:
                raise FeedUnavailable(
                    f"Failed to fetch from Whale Alert: {e}", details=str(e)
                ) from e
            finally:
                self._last_call = time.monotonic()

        if response.status_code == 401:
            raise Unauthorized(f"Whale Alert rejected the API key: {response.text}")
        if not response.is_success:
            raise FeedUnavailable(
                f"Whale Alert API error: {response.status_code} {response.reason_phrase}",
                status_code=response.status_code,
                details=response.text,
            )

        try:
            return response.json()
        except ValueError as e:
            raise FeedUnavailable(f"Invalid JSON from Whale Alert: {e}") from e

    async def get_status(self) -> list[FeedBlockchain]:
        """Get the supported blockchains and their currencies."""
        data = await self._request("/status")
        return [
            FeedBlockchain(name=item.get("name", ""), symbols=item.get("symbols") or [])
            for item in data.get("blockchains") or []
        ]

    async def get_transactions(
        self,
        blockchain: str,
        start: datetime | int,
        end: datetime | int,
        min_value_usd: int | None = None,
        limit: int = MAX_FEED_LIMIT,
    ) -> list[WhaleTransaction]:
        """
        Fetch large transactions for one blockchain in [start, end).

        Args:
            blockchain: Feed blockchain name (e.g. "bitcoin")
            start: Window start (datetime or unix seconds)
            end: Window end (datetime or unix seconds)
            min_value_usd: Minimum USD value to return
            limit: Maximum records, clamped to 256

        Returns:
            List of WhaleTransaction objects
        """
        data = await self._request(
            f"/v1/{blockchain.lower()}/transactions",
            {
                "start": _to_unix(start),
                "end": _to_unix(end),
                "limit": min(limit, MAX_FEED_LIMIT),
                "min_value": min_value_usd,
            },
        )
        return [WhaleTransaction.from_feed(item) for item in data.get("transactions") or []]

    async def get_transaction(self, blockchain: str, tx_hash: str) -> WhaleTransaction | None:
        """Fetch one transaction by hash. Returns None if it cannot be fetched."""
        try:
            data = await self._request(f"/v1/{blockchain.lower()}/transaction/{tx_hash}")
        except WhaleWatcherError as e:
            logger.error(f"Failed to fetch transaction {tx_hash}: {e}")
            return None

        items = data.get("transactions") if "transactions" in data else [data]
        if not items:
            return None
        return WhaleTransaction.from_feed(items[0])

    async def get_address_transactions(
        self,
        blockchain: str,
        address: str,
        start: datetime | int,
        end: datetime | int,
        limit: int = MAX_FEED_LIMIT,
    ) -> list[WhaleTransaction]:
        """
        Fetch transactions touching an address.

        Best-effort: any feed failure is logged and an empty list returned.
        """
        try:
            data = await self._request(
                f"/v1/{blockchain.lower()}/address/{address}/transactions",
                {
                    "start": _to_unix(start),
                    "end": _to_unix(end),
                    "limit": min(limit, MAX_FEED_LIMIT),
                },
            )
        except WhaleWatcherError as e:
            logger.error(f"Failed to fetch transactions for address {address}: {e}")
            return []

        return [WhaleTransaction.from_feed(item) for item in data.get("transactions") or []]

    async def get_multi_address_transactions(
        self,
        addresses: list[str],
        period: str = "24h",
        now: datetime | None = None,
    ) -> dict[str, AddressActivity]:
        """
        Look up recent activity for several addresses across blockchains.

        Addresses that cannot be classified are reported with an error and
        skipped; the rest of the batch still runs.
        """
        if period not in PERIODS:
            raise ValueError(f"Unknown period {period!r}, expected one of {list(PERIODS)}")

        end = now or datetime.now(timezone.utc)
        start = end - PERIODS[period]
        results: dict[str, AddressActivity] = {}

        for address in addresses:
            try:
                blockchain = classify_address(address)
            except WhaleWatcherError as e:
                logger.warning(str(e))
                results[address] = AddressActivity(
                    address=address,
                    blockchain="unknown",
                    transactions=[],
                    error=e.message,
                )
                continue

            transactions = await self.get_address_transactions(
                blockchain, address, start=start, end=end
            )
            results[address] = AddressActivity(
                address=address,
                blockchain=blockchain,
                transactions=transactions,
            )

        return results
