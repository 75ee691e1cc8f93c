"""Whale Alert feed client and address helpers."""

from .addresses import classify_address
from .feed import AddressActivity, FeedBlockchain, WhaleFeedClient, WhaleTransaction

__all__ = [
    "AddressActivity",
    "FeedBlockchain",
    "WhaleFeedClient",
    "WhaleTransaction",
    "classify_address",
]
