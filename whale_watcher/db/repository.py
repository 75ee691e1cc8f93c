"""Database repository for whale transactions, polling state, subscriptions and notifications."""

import asyncio
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path

import aiosqlite

from ..api import WhaleTransaction
from ..matching import AlertPreferences
from .models import SCHEMA

logger = logging.getLogger(__name__)


def _iso(value: datetime) -> str:
    """Normalise to a UTC ISO-8601 string so stored timestamps compare as text."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


def _parse(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


@dataclass
class PollingState:
    """Process-wide polling checkpoint."""

    last_processed_timestamp: datetime
    last_transaction_hash: str | None
    transactions_processed: int
    last_error: str | None
    updated_at: datetime
    cycle_token: str | None = None
    cycle_started_at: datetime | None = None


@dataclass
class Subscription:
    """A user's whale alert subscription."""

    user_id: str
    is_active: bool
    preferences: AlertPreferences
    email: str | None = None


@dataclass
class Notification:
    """An in-app notification record."""

    user_id: str
    transaction_ref: str
    title: str
    message: str
    data: dict
    created_at: datetime
    type: str = "whale_alert"
    is_read: bool = False
    is_archived: bool = False
    id: int | None = None


@dataclass
class InsertOutcome:
    """Result of a batch transaction insert."""

    inserted: list[WhaleTransaction] = field(default_factory=list)
    duplicates: int = 0


class Repository:
    """Database repository for all persistence operations."""

    def __init__(self, db_path: str | Path):
        self.db_path = Path(db_path)
        self._connection: aiosqlite.Connection | None = None
        # One shared connection: each write transaction must commit or roll
        # back before the next one starts
        self._write_lock = asyncio.Lock()

    async def initialize(self):
        """Initialize the database and create tables."""
        # Ensure directory exists
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self._connection = await aiosqlite.connect(self.db_path)
        self._connection.row_factory = aiosqlite.Row

        await self._connection.executescript(SCHEMA)
        await self._connection.commit()

        logger.info(f"Database initialized at {self.db_path}")

    async def close(self):
        """Close the database connection."""
        if self._connection:
            await self._connection.close()
            self._connection = None

    @property
    def conn(self) -> aiosqlite.Connection:
        """Get the database connection."""
        if not self._connection:
            raise RuntimeError("Database not initialized. Call initialize() first.")
        return self._connection

    async def _write(self, sql: str, params: tuple) -> int:
        """Run one write statement and commit it. Returns the affected row count."""
        async with self._write_lock:
            try:
                async with self.conn.execute(sql, params) as cursor:
                    rowcount = cursor.rowcount
                await self.conn.commit()
            except Exception:
                await self.conn.rollback()
                raise
        return rowcount

    # Whale Transaction Operations

    async def insert_transactions(
        self, transactions: list[WhaleTransaction]
    ) -> InsertOutcome:
        """
        Insert transactions, ignoring hashes that are already stored.

        All rows are written in one transaction. Existing rows are never
        overwritten.

        Returns:
            InsertOutcome listing the transactions that were new
        """
        outcome = InsertOutcome()
        async with self._write_lock:
            try:
                for tx in transactions:
                    async with self.conn.execute(
                        """
                        INSERT INTO whale_transactions (
                            transaction_hash, feed_id, blockchain, symbol, amount,
                            amount_usd, from_address, from_owner, from_owner_type,
                            to_address, to_owner, to_owner_type, transaction_type,
                            transaction_timestamp, metadata
                        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                        ON CONFLICT(transaction_hash) DO NOTHING
                        """,
                        (
                            tx.hash,
                            tx.feed_id,
                            tx.blockchain,
                            tx.symbol,
                            str(tx.amount),
                            str(tx.amount_usd),
                            tx.from_address,
                            tx.from_owner,
                            tx.from_owner_type,
                            tx.to_address,
                            tx.to_owner,
                            tx.to_owner_type,
                            tx.transaction_type,
                            _iso(tx.timestamp),
                            json.dumps(tx.raw) if tx.raw else None,
                        ),
                    ) as cursor:
                        if cursor.rowcount == 1:
                            tx.id = cursor.lastrowid
                            outcome.inserted.append(tx)
                        else:
                            outcome.duplicates += 1
                await self.conn.commit()
            except Exception:
                await self.conn.rollback()
                raise

        return outcome

    async def get_transaction(self, tx_hash: str) -> WhaleTransaction | None:
        """Get a stored transaction by hash."""
        async with self.conn.execute(
            "SELECT * FROM whale_transactions WHERE transaction_hash = ?", (tx_hash,)
        ) as cursor:
            row = await cursor.fetchone()
            return self._row_to_transaction(row) if row else None

    async def count_transactions(self) -> int:
        async with self.conn.execute(
            "SELECT COUNT(*) as count FROM whale_transactions"
        ) as cursor:
            row = await cursor.fetchone()
            return row["count"] if row else 0

    async def get_recent_transactions(
        self,
        limit: int = 50,
        blockchain: str | None = None,
        min_usd_value: Decimal | None = None,
    ) -> list[WhaleTransaction]:
        """Get the newest stored transactions, optionally filtered."""
        query = "SELECT * FROM whale_transactions WHERE 1 = 1"
        params: list = []
        if blockchain:
            query += " AND blockchain = ?"
            params.append(blockchain)
        if min_usd_value is not None:
            query += " AND CAST(amount_usd AS REAL) >= ?"
            params.append(float(min_usd_value))
        query += " ORDER BY transaction_timestamp DESC LIMIT ?"
        params.append(limit)

        async with self.conn.execute(query, params) as cursor:
            rows = await cursor.fetchall()
            return [self._row_to_transaction(row) for row in rows]

    @staticmethod
    def _row_to_transaction(row) -> WhaleTransaction:
        return WhaleTransaction(
            id=row["id"],
            hash=row["transaction_hash"],
            feed_id=row["feed_id"],
            blockchain=row["blockchain"],
            symbol=row["symbol"],
            amount=Decimal(row["amount"]),
            amount_usd=Decimal(row["amount_usd"]),
            from_address=row["from_address"],
            from_owner=row["from_owner"],
            from_owner_type=row["from_owner_type"],
            to_address=row["to_address"],
            to_owner=row["to_owner"],
            to_owner_type=row["to_owner_type"],
            transaction_type=row["transaction_type"],
            timestamp=datetime.fromisoformat(row["transaction_timestamp"]),
            raw=json.loads(row["metadata"]) if row["metadata"] else {},
        )

    # Polling State Operations

    async def ensure_polling_state(self, initial_timestamp: datetime):
        """Create the checkpoint row if it does not exist yet."""
        await self._write(
            """
            INSERT OR IGNORE INTO polling_state (
                id, last_processed_timestamp, transactions_processed, updated_at
            ) VALUES (1, ?, 0, ?)
            """,
            (_iso(initial_timestamp), _iso(datetime.now(timezone.utc))),
        )

    async def get_polling_state(self) -> PollingState | None:
        """Get the checkpoint row."""
        async with self.conn.execute("SELECT * FROM polling_state WHERE id = 1") as cursor:
            row = await cursor.fetchone()
            if not row:
                return None

            return PollingState(
                last_processed_timestamp=datetime.fromisoformat(
                    row["last_processed_timestamp"]
                ),
                last_transaction_hash=row["last_transaction_hash"],
                transactions_processed=row["transactions_processed"],
                last_error=row["last_error"],
                updated_at=datetime.fromisoformat(row["updated_at"]),
                cycle_token=row["cycle_token"],
                cycle_started_at=_parse(row["cycle_started_at"]),
            )

    async def acquire_cycle_lock(
        self, token: str, now: datetime, stale_before: datetime
    ) -> bool:
        """
        Claim the checkpoint row for one cycle (compare-and-swap).

        Succeeds when no cycle holds the row, or the holder started before
        ``stale_before``.
        """
        return await self._write(
            """
            UPDATE polling_state
            SET cycle_token = ?, cycle_started_at = ?
            WHERE id = 1 AND (cycle_token IS NULL OR cycle_started_at < ?)
            """,
            (token, _iso(now), _iso(stale_before)),
        ) == 1

    async def save_checkpoint(
        self,
        token: str,
        processed_until: datetime,
        last_transaction_hash: str | None,
        processed_increment: int,
        last_error: str | None,
        now: datetime,
    ) -> bool:
        """
        Advance the checkpoint and release the cycle lock in one write.

        The timestamp never moves backwards. Returns False if the lock was
        lost to another cycle, in which case nothing is written.
        """
        return await self._write(
            """
            UPDATE polling_state
            SET last_processed_timestamp = MAX(last_processed_timestamp, ?),
                last_transaction_hash = COALESCE(?, last_transaction_hash),
                transactions_processed = transactions_processed + ?,
                last_error = ?,
                updated_at = ?,
                cycle_token = NULL,
                cycle_started_at = NULL
            WHERE id = 1 AND cycle_token = ?
            """,
            (
                _iso(processed_until),
                last_transaction_hash,
                processed_increment,
                last_error,
                _iso(now),
                token,
            ),
        ) == 1

    async def release_cycle_lock(
        self, token: str, last_error: str | None, now: datetime
    ) -> bool:
        """Release the cycle lock without advancing the checkpoint."""
        return await self._write(
            """
            UPDATE polling_state
            SET last_error = ?, updated_at = ?, cycle_token = NULL, cycle_started_at = NULL
            WHERE id = 1 AND cycle_token = ?
            """,
            (last_error, _iso(now), token),
        ) == 1

    # User and Subscription Operations

    async def upsert_user(self, user_id: str, email: str | None, tier: str):
        """Create or update a user's tier."""
        await self._write(
            """
            INSERT INTO users (id, email, tier) VALUES (?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET email = excluded.email, tier = excluded.tier
            """,
            (user_id, email, tier),
        )

    async def upsert_subscription(
        self, user_id: str, is_active: bool, preferences: AlertPreferences
    ):
        """Create or replace a user's subscription."""
        await self._write(
            """
            INSERT INTO whale_alert_subscriptions (user_id, is_active, notification_preferences)
            VALUES (?, ?, ?)
            ON CONFLICT(user_id) DO UPDATE SET
                is_active = excluded.is_active,
                notification_preferences = excluded.notification_preferences,
                updated_at = CURRENT_TIMESTAMP
            """,
            (user_id, int(is_active), json.dumps(preferences.to_dict())),
        )

    async def get_active_subscriptions(
        self, entitled_tiers: list[str] | tuple[str, ...]
    ) -> list[Subscription]:
        """Get active subscriptions whose users hold an entitled tier."""
        if not entitled_tiers:
            return []

        placeholders = ", ".join("?" for _ in entitled_tiers)
        async with self.conn.execute(
            f"""
            SELECT s.user_id, s.is_active, s.notification_preferences, u.email
            FROM whale_alert_subscriptions s
            JOIN users u ON u.id = s.user_id
            WHERE s.is_active = 1 AND u.tier IN ({placeholders})
            ORDER BY s.id
            """,
            tuple(entitled_tiers),
        ) as cursor:
            rows = await cursor.fetchall()

        subscriptions = []
        for row in rows:
            try:
                preferences = AlertPreferences.from_dict(
                    json.loads(row["notification_preferences"])
                )
            except (ValueError, TypeError, ArithmeticError) as e:
                logger.warning(f"Skipping subscription for {row['user_id']}: bad preferences ({e})")
                continue
            subscriptions.append(
                Subscription(
                    user_id=row["user_id"],
                    is_active=bool(row["is_active"]),
                    preferences=preferences,
                    email=row["email"],
                )
            )
        return subscriptions

    # Notification Operations

    async def insert_notifications(self, notifications: list[Notification]) -> int:
        """Insert a batch of notifications in a single statement."""
        if not notifications:
            return 0

        rows = [
            (
                n.user_id,
                n.type,
                n.transaction_ref,
                n.title,
                n.message,
                json.dumps(n.data),
                int(n.is_read),
                int(n.is_archived),
                _iso(n.created_at),
            )
            for n in notifications
        ]
        async with self._write_lock:
            try:
                await self.conn.executemany(
                    """
                    INSERT INTO notifications (
                        user_id, type, transaction_ref, title, message, data,
                        is_read, is_archived, created_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    rows,
                )
                await self.conn.commit()
            except Exception:
                await self.conn.rollback()
                raise

        return len(notifications)

    async def get_notifications(
        self, user_id: str | None = None, limit: int = 100
    ) -> list[Notification]:
        """Get recent notifications, newest first."""
        query = "SELECT * FROM notifications"
        params: list = []
        if user_id is not None:
            query += " WHERE user_id = ?"
            params.append(user_id)
        query += " ORDER BY created_at DESC, id DESC LIMIT ?"
        params.append(limit)

        async with self.conn.execute(query, params) as cursor:
            rows = await cursor.fetchall()

            return [
                Notification(
                    id=row["id"],
                    user_id=row["user_id"],
                    type=row["type"],
                    transaction_ref=row["transaction_ref"],
                    title=row["title"],
                    message=row["message"],
                    data=json.loads(row["data"]) if row["data"] else {},
                    is_read=bool(row["is_read"]),
                    is_archived=bool(row["is_archived"]),
                    created_at=datetime.fromisoformat(row["created_at"]),
                )
                for row in rows
            ]
