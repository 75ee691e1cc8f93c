"""Main entry point for Whale Watcher."""

import argparse
import asyncio
import logging
import signal
import sys
from collections import Counter
from pathlib import Path

from .alerting import AlertLogger, setup_app_logging
from .api import WhaleFeedClient
from .config import Config, load_config
from .db import Repository
from .dispatch import NotificationDispatcher, format_usd
from .errors import ConfigError, WhaleWatcherError
from .ingest import Ingestor
from .matching import PreferenceMatcher
from .polling import PollCoordinator, PollResult, PollScheduler

logger = logging.getLogger(__name__)


class WhaleWatcher:
    """Main application class that wires the polling pipeline together."""

    def __init__(self, config: Config):
        self.config = config

        # Initialize components
        self.repository = Repository(config.database.path)
        self.feed = WhaleFeedClient(config.feed)
        self.ingestor = Ingestor(self.repository)
        self.dispatcher = NotificationDispatcher(
            self.repository,
            matcher=PreferenceMatcher(),
            entitled_tiers=config.dispatch.entitled_tiers,
        )
        self.coordinator = PollCoordinator(
            repository=self.repository,
            feed=self.feed,
            ingestor=self.ingestor,
            dispatcher=self.dispatcher,
            config=config.polling,
        )
        self.alert_logger = AlertLogger(
            log_file=config.logging.file,
            log_level=config.logging.level,
            max_file_size_mb=config.logging.max_file_size_mb,
            backup_count=config.logging.backup_count,
        )
        self.scheduler = PollScheduler(
            self.coordinator,
            interval_seconds=config.polling.interval_seconds,
            on_result=self._on_result,
        )

    async def start(self):
        """Open the database and seed the checkpoint."""
        await self.repository.initialize()
        await self.coordinator.initialize()
        logger.info(
            f"Watching {', '.join(self.config.polling.blockchains)} for transactions "
            f"above ${self.config.polling.min_value_usd:,}"
        )

    async def stop(self):
        """Stop the watcher gracefully."""
        logger.info("Stopping Whale Watcher...")
        self.scheduler.stop()
        await self.feed.close()
        await self.repository.close()
        self.alert_logger.close()

    async def run_forever(self):
        await self.scheduler.run()

    async def poll_once(self) -> PollResult:
        result = await self.coordinator.run_cycle()
        await self._on_result(result)
        return result

    async def _on_result(self, result: PollResult):
        """Log each newly stored transaction with its notification count."""
        recipients = Counter(n.transaction_ref for n in result.notifications)
        for tx in result.new_transactions:
            self.alert_logger.log_transaction(tx, recipients.get(tx.hash, 0))


def parse_args(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Whale Watcher - Track large blockchain transactions and notify subscribers"
    )
    parser.add_argument(
        "--config",
        "-c",
        type=str,
        default="config.yaml",
        help="Path to configuration file (default: config.yaml)",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command")
    subparsers.add_parser("run", help="Poll the feed on a fixed interval (default)")
    subparsers.add_parser("poll", help="Run a single polling cycle and exit")
    subparsers.add_parser("status", help="List blockchains supported by the feed")

    lookup = subparsers.add_parser("lookup", help="Show recent activity for addresses")
    lookup.add_argument("addresses", nargs="+", help="Wallet addresses")
    lookup.add_argument(
        "--period",
        choices=["1h", "24h", "7d", "30d"],
        default="24h",
        help="How far back to look (default: 24h)",
    )
    lookup.add_argument(
        "--ingest",
        action="store_true",
        help="Store the transactions found and notify subscribers",
    )

    args = parser.parse_args(argv)
    if args.command is None:
        args.command = "run"
    return args


async def run_watcher(watcher: WhaleWatcher):
    """Run the scheduler until SIGINT/SIGTERM."""
    loop = asyncio.get_running_loop()
    shutdown_event = asyncio.Event()

    def signal_handler():
        logger.info("Received shutdown signal")
        shutdown_event.set()

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, signal_handler)

    watcher_task = asyncio.create_task(watcher.run_forever())
    await shutdown_event.wait()

    watcher.scheduler.stop()
    watcher_task.cancel()
    try:
        await watcher_task
    except asyncio.CancelledError:
        pass


async def show_status(watcher: WhaleWatcher) -> int:
    blockchains = await watcher.feed.get_status()
    for blockchain in blockchains:
        print(f"{blockchain.name:<12} {', '.join(blockchain.symbols)}")
    return 0


async def lookup_addresses(watcher: WhaleWatcher, args) -> int:
    results = await watcher.feed.get_multi_address_transactions(
        args.addresses, period=args.period
    )

    found = []
    for address, activity in results.items():
        if activity.error:
            print(f"{address}: {activity.error}")
            continue
        print(
            f"{address} [{activity.blockchain}]: {activity.transaction_count} transactions, "
            f"{format_usd(activity.total_value_usd)} total"
        )
        found.extend(activity.transactions)

    if args.ingest and found:
        new_transactions = await watcher.ingestor.ingest(found)
        notifications = await watcher.dispatcher.dispatch(new_transactions)
        print(f"Stored {len(new_transactions)} new transactions, {len(notifications)} notifications")

    return 0


async def main_async(args) -> int:
    """Async main function."""
    config_path = Path(args.config)
    if not config_path.exists():
        logger.error(f"Configuration file not found: {config_path}")
        return 1

    config = load_config(config_path)

    # Override log level if debug flag is set
    if args.debug:
        config.logging.level = "DEBUG"

    setup_app_logging(config.logging.level)

    try:
        config.validate()
    except ConfigError as e:
        logger.error(f"Invalid configuration: {e}")
        return 1

    watcher = WhaleWatcher(config)
    await watcher.start()

    try:
        if args.command == "poll":
            result = await watcher.poll_once()
            print(
                f"success={result.success} processed={result.processed} "
                f"notifications={len(result.notifications)}"
            )
            for error in result.errors:
                print(f"error: {error}")
            return 0 if result.success else 1
        if args.command == "status":
            return await show_status(watcher)
        if args.command == "lookup":
            return await lookup_addresses(watcher, args)

        await run_watcher(watcher)
        return 0
    except WhaleWatcherError as e:
        logger.error(str(e))
        return 1
    finally:
        await watcher.stop()


def main():
    """Main entry point."""
    args = parse_args()

    try:
        sys.exit(asyncio.run(main_async(args)))
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
