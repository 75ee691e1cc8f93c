"""Error types raised across the watcher."""


class WhaleWatcherError(Exception):
    """Base class for all watcher errors."""

    def __init__(self, message: str, status_code: int | None = None, details=None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.details = details


class ConfigError(WhaleWatcherError):
    """Configuration is missing or invalid."""


class Unauthorized(WhaleWatcherError):
    """No usable feed credential is configured."""

    def __init__(self, message: str = "Whale Alert API key not configured"):
        super().__init__(message, status_code=401)


class FeedUnavailable(WhaleWatcherError):
    """The feed returned a non-2xx response or could not be reached."""


class UnrecognizedAddress(WhaleWatcherError):
    """An address does not match any known blockchain format."""

    def __init__(self, address: str):
        super().__init__(
            f"Unable to detect blockchain for address: {address}", status_code=400
        )
        self.address = address


class PersistenceFailure(WhaleWatcherError):
    """A datastore read or write failed."""
