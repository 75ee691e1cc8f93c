"""Notification dispatcher - fans new transactions out to subscribers."""

import logging
from datetime import datetime
from typing import Callable, Protocol

from ..api import WhaleTransaction
from ..db import Notification, Repository, Subscription
from ..matching import CHANNEL_EMAIL, CHANNEL_IN_APP, PreferenceMatcher
from .formatting import notification_data, notification_message, notification_title

logger = logging.getLogger(__name__)


def local_now() -> datetime:
    """Timezone-aware current time in the server's local zone."""
    return datetime.now().astimezone()


class EmailSender(Protocol):
    """Collaborator that delivers whale alerts by email."""

    async def send_whale_alerts(
        self, subscription: Subscription, transactions: list[WhaleTransaction]
    ) -> None:
        ...


class NotificationDispatcher:
    """
    Creates notification records for subscribers whose preferences match.

    Delivery is best-effort: failures are logged and never propagate, so
    transactions already stored stay stored.
    """

    def __init__(
        self,
        repository: Repository,
        matcher: PreferenceMatcher | None = None,
        entitled_tiers: list[str] | tuple[str, ...] = ("elite",),
        email_sender: EmailSender | None = None,
        clock: Callable[[], datetime] = local_now,
    ):
        self.repository = repository
        self.matcher = matcher or PreferenceMatcher()
        self.entitled_tiers = tuple(entitled_tiers)
        self.email_sender = email_sender
        self.clock = clock

    async def dispatch(self, transactions: list[WhaleTransaction]) -> list[Notification]:
        """
        Fan out newly stored transactions.

        Args:
            transactions: Transactions the ingestor reported as new

        Returns:
            Notifications written (empty if nothing matched or writing failed)
        """
        if not transactions:
            return []

        try:
            subscriptions = await self.repository.get_active_subscriptions(
                self.entitled_tiers
            )
        except Exception as e:
            logger.error(f"Failed to load subscriptions: {e}", exc_info=True)
            return []

        now = self.clock()
        notifications: list[Notification] = []
        email_batches: list[tuple[Subscription, list[WhaleTransaction]]] = []

        for subscription in subscriptions:
            prefs = subscription.preferences
            try:
                matching = self.matcher.filter(transactions, prefs, now)
            except Exception as e:
                logger.error(
                    f"Failed to match transactions for {subscription.user_id}: {e}",
                    exc_info=True,
                )
                continue
            if not matching:
                continue

            if CHANNEL_IN_APP in prefs.notification_channels:
                notifications.extend(
                    self._build(subscription.user_id, tx, now) for tx in matching
                )
            if CHANNEL_EMAIL in prefs.notification_channels:
                email_batches.append((subscription, matching))

        logger.debug(
            f"Matched {len(transactions)} transactions against {len(subscriptions)} "
            f"subscriptions: {len(notifications)} in-app notifications"
        )

        if notifications:
            try:
                await self.repository.insert_notifications(notifications)
            except Exception as e:
                logger.error(f"Failed to create notifications: {e}", exc_info=True)
                notifications = []

        await self._send_emails(email_batches)
        return notifications

    async def _send_emails(self, batches: list[tuple[Subscription, list[WhaleTransaction]]]):
        if not batches:
            return
        if self.email_sender is None:
            logger.debug(f"No email sender configured, skipped {len(batches)} email alerts")
            return

        for subscription, matching in batches:
            try:
                await self.email_sender.send_whale_alerts(subscription, matching)
            except Exception as e:
                logger.error(f"Failed to email whale alerts to {subscription.user_id}: {e}")

    @staticmethod
    def _build(user_id: str, tx: WhaleTransaction, now: datetime) -> Notification:
        return Notification(
            user_id=user_id,
            transaction_ref=tx.hash,
            title=notification_title(tx),
            message=notification_message(tx),
            data=notification_data(tx),
            created_at=now,
        )
