"""Text formatting for whale alert notifications."""

from decimal import ROUND_HALF_UP, Decimal

from ..api import WhaleTransaction

UNKNOWN_OWNER = "Unknown"


def format_usd(value: Decimal | float) -> str:
    """Compact USD amount: $1.2M from one million up, $250K below. Halves round up."""
    value = Decimal(str(value))
    if value >= 1_000_000:
        return f"${(value / 1_000_000).quantize(Decimal('0.1'), ROUND_HALF_UP)}M"
    return f"${(value / 1_000).quantize(Decimal('1'), ROUND_HALF_UP)}K"


def notification_title(tx: WhaleTransaction) -> str:
    return f"🐋 {format_usd(tx.amount_usd)} {tx.symbol} Transaction"


def notification_message(tx: WhaleTransaction) -> str:
    sender = tx.from_owner or UNKNOWN_OWNER
    receiver = tx.to_owner or UNKNOWN_OWNER
    return f"{sender} → {receiver} on {tx.blockchain.capitalize()}"


def notification_data(tx: WhaleTransaction) -> dict:
    """Structured payload stored alongside the notification."""
    return {
        "transaction_id": tx.id,
        "hash": tx.hash,
        "blockchain": tx.blockchain,
        "amount": str(tx.amount),
        "amount_usd": str(tx.amount_usd),
        "timestamp": tx.timestamp.isoformat(),
    }
