"""Ingestor - stores feed transactions exactly once per hash."""

import logging

from ..api import WhaleTransaction
from ..db import Repository
from ..errors import PersistenceFailure

logger = logging.getLogger(__name__)


class Ingestor:
    """
    Deduplicates and persists whale transactions.

    Overlapping batches carrying the same hash can be ingested at the same
    time; the unique key on the transaction hash stores it, and reports it
    as new, once. The repository commits each batch as its own write
    transaction, so a batch that fails rolls back only its own rows.
    """

    def __init__(self, repository: Repository):
        self.repository = repository

    async def ingest(self, transactions: list[WhaleTransaction]) -> list[WhaleTransaction]:
        """
        Persist a batch of transactions.

        Args:
            transactions: Feed transactions, possibly with repeated hashes

        Returns:
            The transactions that were newly stored

        Raises:
            PersistenceFailure: if the datastore write fails
        """
        unique: dict[str, WhaleTransaction] = {}
        for tx in transactions:
            unique.setdefault(tx.hash, tx)

        if not unique:
            return []

        try:
            outcome = await self.repository.insert_transactions(list(unique.values()))
        except Exception as e:
            raise PersistenceFailure(f"Failed to insert transactions: {e}") from e

        skipped = outcome.duplicates + (len(transactions) - len(unique))
        logger.debug(
            f"Ingested {len(outcome.inserted)} new transactions, skipped {skipped} duplicates"
        )
        return outcome.inserted
