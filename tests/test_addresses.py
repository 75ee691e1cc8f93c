import pytest

from whale_watcher.api import classify_address
from whale_watcher.errors import UnrecognizedAddress


@pytest.mark.parametrize(
    "address, expected",
    [
        ("1BoatSLRHtKNngkdXEeobR76b53LETtpyT", "bitcoin"),
        ("3J98t1WpEZ73CNmQviecrnyiWrnqRhWNLy", "bitcoin"),
        ("bc1qar0srrr7xfkvy5l643lydnw9re59gtzzwf5mdq", "bitcoin"),
        ("BC1QAR0SRRR7XFKVY5L643LYDNW9RE59GTZZWF5MDQ", "bitcoin"),
        ("0xAbC" + "0" * 37, "ethereum"),
        ("0x742d35cc6634c0532925a3b844bc454e4438f44e", "ethereum"),
        ("TR7NHqjeKQxGTCi8q8ZY4pL8otSzgjLj6t", "tron"),
    ],
)
def test_classifies_known_formats(address, expected):
    assert classify_address(address) == expected


def test_surrounding_whitespace_is_ignored():
    assert classify_address("  0x742d35cc6634c0532925a3b844bc454e4438f44e\n") == "ethereum"


@pytest.mark.parametrize(
    "address",
    [
        "abc123XYZ0",
        "",
        "0x123",
        "0x" + "g" * 40,
        # base58 excludes 0, O, I and l
        "1BoatSLRHtKNngkdXEeobR76b53LETtp0T",
        "T" + "0" * 33,
    ],
)
def test_unrecognized_formats_fail(address):
    with pytest.raises(UnrecognizedAddress) as exc_info:
        classify_address(address)

    assert exc_info.value.address == address
    assert exc_info.value.status_code == 400
