"""Poll coordinator - runs one fetch/ingest/dispatch/checkpoint cycle."""

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Callable

from ..api import WhaleFeedClient, WhaleTransaction
from ..config import PollingConfig
from ..db import Notification, Repository
from ..dispatch import NotificationDispatcher
from ..errors import PersistenceFailure
from ..ingest import Ingestor

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class PollResult:
    """Summary of one polling cycle."""

    success: bool
    processed: int
    errors: list[str] = field(default_factory=list)
    new_transactions: list[WhaleTransaction] = field(default_factory=list)
    notifications: list[Notification] = field(default_factory=list)
    skipped: bool = False


class PollCoordinator:
    """
    Orchestrates a polling cycle.

    Phases: fetch every configured blockchain for the window since the
    last checkpoint, ingest the combined batch, dispatch notifications for
    the newly stored transactions, then advance the checkpoint.

    Only one cycle runs at a time. Within a process this is an asyncio
    lock; across processes sharing the database a cycle token on the
    checkpoint row is claimed by compare-and-swap.
    """

    def __init__(
        self,
        repository: Repository,
        feed: WhaleFeedClient,
        ingestor: Ingestor,
        dispatcher: NotificationDispatcher,
        config: PollingConfig,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.repository = repository
        self.feed = feed
        self.ingestor = ingestor
        self.dispatcher = dispatcher
        self.config = config
        self.clock = clock
        self._cycle_lock = asyncio.Lock()

    @property
    def in_flight(self) -> bool:
        return self._cycle_lock.locked()

    async def initialize(self):
        """Seed the checkpoint row on first run."""
        start = self.clock() - timedelta(seconds=self.config.initial_lookback_seconds)
        await self.repository.ensure_polling_state(start)

    async def run_cycle(self) -> PollResult:
        """
        Run one polling cycle.

        Returns:
            PollResult; ``skipped`` is set when another cycle held the lock
        """
        if self._cycle_lock.locked():
            logger.warning("Polling cycle already in progress, skipping")
            return PollResult(
                success=False,
                processed=0,
                errors=["Polling cycle already in progress"],
                skipped=True,
            )

        async with self._cycle_lock:
            return await self._run_locked()

    async def _run_locked(self) -> PollResult:
        errors: list[str] = []
        now = self.clock()
        token = uuid.uuid4().hex
        stale_before = now - timedelta(seconds=self.config.lock_stale_after_seconds)

        try:
            acquired = await self.repository.acquire_cycle_lock(token, now, stale_before)
            state = await self.repository.get_polling_state()
        except Exception as e:
            return PollResult(
                success=False, processed=0, errors=[f"Failed to get polling state: {e}"]
            )

        if state is None:
            return PollResult(
                success=False, processed=0, errors=["Polling state not initialized"]
            )
        if not acquired:
            logger.warning(
                f"Polling state held by another cycle since {state.cycle_started_at}, skipping"
            )
            return PollResult(
                success=False,
                processed=0,
                errors=["Polling cycle already in progress"],
                skipped=True,
            )

        start = state.last_processed_timestamp
        end = max(now, start)

        logger.debug(f"Fetching window {start.isoformat()} -> {end.isoformat()}")
        transactions = await self._fetch_all(start, end, errors)

        logger.debug(f"Ingesting {len(transactions)} transactions")
        try:
            new_transactions = await self.ingestor.ingest(transactions)
        except PersistenceFailure as e:
            # Checkpoint stays put so the window is fetched again next cycle
            errors.append(e.message)
            logger.error(e.message)
            await self._release(token, errors)
            return PollResult(success=False, processed=0, errors=errors)

        notifications = []
        if new_transactions:
            logger.debug(f"Dispatching {len(new_transactions)} new transactions")
            try:
                notifications = await self.dispatcher.dispatch(new_transactions)
            except Exception as e:
                # Transactions are stored; the checkpoint still has to advance
                logger.error(f"Failed to dispatch notifications: {e}", exc_info=True)
                errors.append(f"Failed to dispatch notifications: {e}")

        logger.debug("Checkpointing")
        last_hash = transactions[-1].hash if transactions else None
        try:
            saved = await self.repository.save_checkpoint(
                token=token,
                processed_until=end,
                last_transaction_hash=last_hash,
                processed_increment=len(new_transactions),
                last_error="; ".join(errors) if errors else None,
                now=self.clock(),
            )
            if not saved:
                errors.append("Lost polling state lock before checkpoint")
        except Exception as e:
            errors.append(f"Failed to update polling state: {e}")

        return PollResult(
            success=not errors,
            processed=len(new_transactions),
            errors=errors,
            new_transactions=new_transactions,
            notifications=notifications,
        )

    async def _fetch_all(
        self, start: datetime, end: datetime, errors: list[str]
    ) -> list[WhaleTransaction]:
        """
        Query every blockchain concurrently and combine the results.

        Failures and timeouts are appended to ``errors``; they do not stop
        the other blockchains.
        """
        tasks = {
            blockchain: asyncio.create_task(
                self.feed.get_transactions(
                    blockchain,
                    start=start,
                    end=end,
                    min_value_usd=self.config.min_value_usd,
                    limit=self.config.limit,
                )
            )
            for blockchain in self.config.blockchains
        }
        if not tasks:
            return []

        _, pending = await asyncio.wait(
            list(tasks.values()), timeout=self.config.max_cycle_seconds
        )
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)

        transactions: list[WhaleTransaction] = []
        for blockchain, task in tasks.items():
            if task in pending:
                message = (
                    f"Failed to fetch {blockchain} transactions: "
                    f"timed out after {self.config.max_cycle_seconds:g}s"
                )
            elif task.exception() is not None:
                message = f"Failed to fetch {blockchain} transactions: {task.exception()}"
            else:
                batch = task.result()
                logger.debug(f"{blockchain}: {len(batch)} transactions")
                transactions.extend(batch)
                continue

            logger.warning(message)
            errors.append(message)

        return transactions

    async def _release(self, token: str, errors: list[str]):
        try:
            await self.repository.release_cycle_lock(token, "; ".join(errors), self.clock())
        except Exception as e:
            logger.error(f"Failed to release polling state lock: {e}")
            errors.append(f"Failed to update polling state: {e}")
