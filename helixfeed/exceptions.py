"""Exceptions raised by the feed ingestion pipeline."""

from typing import Optional


class HelixFeedError(Exception):
    """Base class for all helixfeed errors."""


class ConfigError(HelixFeedError):
    """The feed registry file is missing or malformed."""


class FetchError(HelixFeedError):
    """A feed could not be downloaded.

    ``status`` is the HTTP status code for non-2xx responses and ``None``
    for connection failures and timeouts.
    """

    def __init__(self, url: str, status: Optional[int], message: str):
        self.url = url
        self.status = status
        self.message = message
        if status is None:
            super().__init__(f"{url}: {message}")
        else:
            super().__init__(f"HTTP {status}: {message} ({url})")


class FeedNotFoundError(HelixFeedError, KeyError):
    """No feed with the requested id exists in the registry."""

    def __str__(self):
        return f"Feed not found: {self.args[0]}"


class DuplicateRecordError(HelixFeedError):
    """The store already holds a record with the same identifier."""

    def __init__(self, identifier: str):
        self.identifier = identifier
        super().__init__(f"duplicate regulatory update: {identifier}")
