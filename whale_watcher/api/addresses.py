"""Blockchain detection from wallet address formats."""

import re

from ..errors import UnrecognizedAddress

# Checked in order, first match wins. The patterns are mutually exclusive.
ADDRESS_PATTERNS: list[tuple[str, re.Pattern]] = [
    ("bitcoin", re.compile(r"^[13][a-km-zA-HJ-NP-Z1-9]{25,34}$")),  # legacy / P2SH
    ("bitcoin", re.compile(r"^bc1[a-z0-9]{39,87}$", re.IGNORECASE)),  # bech32
    ("ethereum", re.compile(r"^0x[a-fA-F0-9]{40}$")),
    ("tron", re.compile(r"^T[A-Za-z1-9]{33}$")),
]


def classify_address(address: str) -> str:
    """
    Detect which blockchain an address belongs to.

    Args:
        address: Wallet address string

    Returns:
        Blockchain name as used by the feed ("bitcoin", "ethereum", "tron")

    Raises:
        UnrecognizedAddress: if no known format matches
    """
    candidate = address.strip()
    for blockchain, pattern in ADDRESS_PATTERNS:
        if pattern.match(candidate):
            return blockchain
    raise UnrecognizedAddress(address)
