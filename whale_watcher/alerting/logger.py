"""Whale alert logging - formats and outputs new transactions to console and file."""

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

from ..api import WhaleTransaction


class WhaleAlertFormatter(logging.Formatter):
    """Custom formatter for whale transaction records."""

    ALERT_FORMAT = """
================================================================================
{timestamp} | WHALE | {blockchain} {transaction_type}
--------------------------------------------------------------------------------
  Amount:      {amount:,.4f} {symbol}
  Value:       ${amount_usd:,.2f}
  From:        {from_address} ({from_owner})
  To:          {to_address} ({to_owner})
  Recipients:  {recipients} in-app notifications
  Tx:          {tx_hash}
================================================================================
"""

    def format(self, record: logging.LogRecord) -> str:
        if hasattr(record, "transaction"):
            return self._format_transaction(record.transaction, record.recipients)
        return super().format(record)

    def _format_transaction(self, tx: WhaleTransaction, recipients: int) -> str:
        return self.ALERT_FORMAT.format(
            timestamp=tx.timestamp.strftime("%Y-%m-%d %H:%M:%S"),
            blockchain=tx.blockchain.upper(),
            transaction_type=tx.transaction_type.upper().replace("_", " "),
            amount=tx.amount,
            symbol=tx.symbol,
            amount_usd=tx.amount_usd,
            from_address=tx.from_address,
            from_owner=tx.from_owner or "Unknown",
            to_address=tx.to_address,
            to_owner=tx.to_owner or "Unknown",
            recipients=recipients,
            tx_hash=tx.hash,
        )


class AlertLogger:
    """Handles whale alert output to console and file."""

    def __init__(
        self,
        log_file: str | Path,
        log_level: str = "INFO",
        max_file_size_mb: int = 10,
        backup_count: int = 5,
        console: bool = True,
    ):
        self.log_file = Path(log_file)
        self.log_level = getattr(logging, log_level.upper(), logging.INFO)
        self.max_file_size = max_file_size_mb * 1024 * 1024
        self.backup_count = backup_count
        self.console = console

        self._logger = logging.getLogger("whale_watcher.alerts")
        self._setup_logging()

    def _setup_logging(self):
        """Configure logging handlers."""
        self._logger.setLevel(self.log_level)
        self._logger.handlers.clear()
        self._logger.propagate = False

        self.log_file.parent.mkdir(parents=True, exist_ok=True)

        if self.console:
            console_handler = logging.StreamHandler(sys.stdout)
            console_handler.setLevel(self.log_level)
            console_handler.setFormatter(WhaleAlertFormatter())
            self._logger.addHandler(console_handler)

        # File handler with rotation
        file_handler = RotatingFileHandler(
            self.log_file,
            maxBytes=self.max_file_size,
            backupCount=self.backup_count,
        )
        file_handler.setLevel(self.log_level)
        file_handler.setFormatter(WhaleAlertFormatter())
        self._logger.addHandler(file_handler)

    def log_transaction(self, tx: WhaleTransaction, recipients: int = 0):
        """Log a newly stored whale transaction."""
        record = self._logger.makeRecord(
            name="whale_watcher.alerts",
            level=logging.WARNING,
            fn="",
            lno=0,
            msg="Whale transaction",
            args=(),
            exc_info=None,
        )
        record.transaction = tx
        record.recipients = recipients
        self._logger.handle(record)

    def close(self):
        for handler in list(self._logger.handlers):
            handler.close()
            self._logger.removeHandler(handler)


def setup_app_logging(level: str = "INFO"):
    """Set up application-wide logging."""
    log_level = getattr(logging, level.upper(), logging.INFO)

    logging.basicConfig(
        level=log_level,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    # Reduce noise from libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)
