"""Exception hierarchy for collection, store and remote sync failures."""

from typing import Any


class CollectorError(Exception):
    """Base class for every error raised by the collector."""


class ScanIOError(CollectorError):
    """A scan root or source file is missing or unreadable."""


class StoreParseError(CollectorError):
    """A translation store file holds malformed content."""


class UnresolvedKeyError(CollectorError):
    """A lookup key has no entry in any translation store."""

    def __init__(self, key: str) -> None:
        super().__init__(f"No translation value found for key: {key}")
        self.key = key


class ValidationError(CollectorError):
    """A record received from the remote service is malformed."""


class CollectionError(CollectorError):
    """The collection pipeline failed as a whole."""


class RemoteError(CollectorError):
    """Base class for failures talking to the translation service."""


class RemoteTransportError(RemoteError):
    """The request kept failing at the transport level until retries ran out."""

    def __init__(self, message: str, attempts: int) -> None:
        super().__init__(message)
        self.attempts = attempts


class RemoteProtocolError(RemoteError):
    """The service answered with a failure envelope."""

    def __init__(self, message: str, details: Any = None) -> None:
        super().__init__(message)
        self.details = details


class BadResponseFormatError(RemoteProtocolError):
    """The response body was empty or not JSON."""


class KeyConflictError(ValueError):
    """A dotted key is used both as a leaf and as a branch."""
